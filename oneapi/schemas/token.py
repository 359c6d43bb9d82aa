from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ApiTokenData(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = ""
    # Empty means every channel is allowed.
    channel_keys: list[str] = Field(default_factory=list)
    total_quota: float = 0.0


class ApiToken(BaseModel):
    key: str
    data: ApiTokenData
    usage: float = 0.0

    @property
    def quota_exhausted(self) -> bool:
        return self.usage >= self.data.total_quota


__all__ = ["ApiToken", "ApiTokenData"]

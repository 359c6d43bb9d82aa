from __future__ import annotations

from pydantic import BaseModel, Field

# Fixed creation timestamp reported for every listed model.
MODEL_CREATED_AT = 1700000000


class ModelInfo(BaseModel):
    id: str
    object: str = "model"
    created: int = MODEL_CREATED_AT
    owned_by: str = "system"


class ModelsResponse(BaseModel):
    object: str = "list"
    data: list[ModelInfo] = Field(default_factory=list)


__all__ = ["MODEL_CREATED_AT", "ModelInfo", "ModelsResponse"]

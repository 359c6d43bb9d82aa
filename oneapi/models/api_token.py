from __future__ import annotations

from sqlalchemy import JSON, Column, Float, String, text

from .base import Base, TimestampMixin


class ApiTokenRecord(TimestampMixin, Base):
    """
    Caller-facing credential.

    `value` holds {name, channel_keys, total_quota}; `usage` is the consumed
    quota and is only ever changed through an atomic `usage = usage + delta`.
    """

    __tablename__ = "api_token"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=False)
    usage = Column(Float, nullable=False, default=0.0, server_default=text("0"))


__all__ = ["ApiTokenRecord"]

from __future__ import annotations

from sqlalchemy import Column, String, Text

from .base import Base, TimestampMixin

MODEL_PRICING_KEY = "model_pricing"
DB_VERSION_KEY = "db_version"


class SettingRecord(TimestampMixin, Base):
    __tablename__ = "settings"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)


__all__ = ["DB_VERSION_KEY", "MODEL_PRICING_KEY", "SettingRecord"]

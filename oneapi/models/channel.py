from __future__ import annotations

from sqlalchemy import JSON, Column, String

from .base import Base, TimestampMixin


class ChannelConfigRecord(TimestampMixin, Base):
    """
    One upstream provider connection.

    `value` holds the channel document (type, endpoint, api_key,
    api_version, deployment_mapper, model_pricing). The admin surface owns
    writes; the gateway only reads these rows.
    """

    __tablename__ = "channel_config"

    key = Column(String(255), primary_key=True)
    value = Column(JSON, nullable=False)


__all__ = ["ChannelConfigRecord"]

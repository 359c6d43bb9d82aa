from __future__ import annotations

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from oneapi.logging_config import logger
from oneapi.models import DB_VERSION_KEY, Base, SettingRecord

DB_VERSION = "1"


def init_db(engine: Engine) -> None:
    """
    Create any missing tables and stamp the schema version into settings.

    Deployments that run Alembic should set AUTO_CREATE_TABLES=false.
    """
    Base.metadata.create_all(bind=engine)
    with Session(engine) as session:
        row = session.execute(
            select(SettingRecord).where(SettingRecord.key == DB_VERSION_KEY)
        ).scalars().first()
        if row is None:
            session.add(SettingRecord(key=DB_VERSION_KEY, value=DB_VERSION))
            session.commit()
            logger.info("Initialised database schema (version=%s)", DB_VERSION)
        elif row.value != DB_VERSION:
            logger.warning(
                "Database schema version %s differs from expected %s; run alembic upgrade",
                row.value,
                DB_VERSION,
            )


__all__ = ["DB_VERSION", "init_db"]

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from oneapi.settings import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # The config store opens sessions from worker threads.
        return {"connect_args": {"check_same_thread": False}}
    # Tuned pool: pre_ping plus periodic recycle so stale connections do not block requests.
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_engine(settings.database_url, future=True, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False
)


__all__ = ["SessionLocal", "engine"]

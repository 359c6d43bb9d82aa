from .init_db import init_db
from .session import SessionLocal, engine

__all__ = ["SessionLocal", "engine", "init_db"]

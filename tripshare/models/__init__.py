from __future__ import annotations

import os
from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base

DATABASE_PATH = os.environ.get("TRIPSHARE_DATABASE_PATH", "/database/tripshare.sqlite3")
DATABASE_URL = (os.environ.get("TRIPSHARE_DATABASE_URL") or "").strip() or f"sqlite:///{DATABASE_PATH}"
try:
    DATABASE_TIMEOUT_SECONDS = float(os.environ.get("TRIPSHARE_DATABASE_TIMEOUT_SECONDS", "30"))
except (TypeError, ValueError):
    DATABASE_TIMEOUT_SECONDS = 30.0
try:
    DATABASE_POOL_SIZE = int(os.environ.get("TRIPSHARE_DATABASE_POOL_SIZE", "4"))
except (TypeError, ValueError):
    DATABASE_POOL_SIZE = 4

TripshareBase = declarative_base()


def _build_engine(url: str, timeout: float, pool_size: int):
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=max(1, pool_size),
            connect_args={"connect_timeout": int(timeout)},
        )

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": timeout},
        pool_pre_ping=True,
    )

    @event.listens_for(engine, "connect")
    def _configure_sqlite(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA busy_timeout=5000;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_engine():
    return _build_engine(DATABASE_URL, DATABASE_TIMEOUT_SECONDS, DATABASE_POOL_SIZE)


def init_db(engine=None) -> None:
    # Import for side effects: registers tables on TripshareBase.metadata
    from . import audit, trips  # noqa: F401

    engine = engine or get_engine()
    if DATABASE_URL.startswith("sqlite:///"):
        db_dir = os.path.dirname(DATABASE_URL[len("sqlite:///"):])
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    TripshareBase.metadata.create_all(engine)

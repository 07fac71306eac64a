# audiotext/db/core.py
from __future__ import annotations

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# -------------------------------------------------------------------
# Default: SQLite file at <project-root>/data/audiotext.db
# Override with AUDIOTEXT_DB_URL (any SQLAlchemy URL).
# "sqlite://" (no path) gives a shared in-memory DB, used by the tests.
# -------------------------------------------------------------------

Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        path = database_url.split("sqlite:///", 1)[-1]
        if path and os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    from audiotext.db import models  # noqa: F401  (register tables on Base)

    Base.metadata.create_all(bind=engine)


__all__ = ["Base", "make_engine", "make_session_factory", "create_tables"]

"""SQLAlchemy engine, declarative base and session factory."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

DEFAULT_DATABASE_URL = "sqlite:///crewscreening.db"


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return pendulum.now("UTC")


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_db_engine(url: str | None = None, *, echo: bool | None = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    url = url or DEFAULT_DATABASE_URL
    echo = bool(echo)
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo)


def init_db(engine: Engine) -> None:
    """Create all tables (idempotent)."""
    from . import models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(engine)


def create_session_factory(engine: Engine, *, create_schema: bool = True) -> sessionmaker[Session]:
    if create_schema:
        init_db(engine)
    return sessionmaker(engine, expire_on_commit=False)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "as_utc",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "utcnow",
]

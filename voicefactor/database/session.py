"""Database session management."""

from pathlib import Path

from sqlalchemy import Engine
from sqlmodel import SQLModel, create_engine

from voicefactor.database.settings import settings


def build_engine(database_url: str | None = None) -> Engine:
    """Create an engine for ``database_url`` (defaults to the configured one)."""
    url = database_url or settings.database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = build_engine()


def init_db(target: Engine | None = None) -> None:
    """Create all tables on ``target`` (defaults to the module engine)."""
    target = target or engine
    if target.url.get_backend_name() == "sqlite" and target.url.database:
        if target.url.database != ":memory:":
            Path(target.url.database).parent.mkdir(parents=True, exist_ok=True)
    # Table classes must be registered on the metadata before create_all
    from voicefactor.database import models  # noqa: F401

    SQLModel.metadata.create_all(target)

from __future__ import annotations

import logging
from typing import Any, Dict, Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ledger.config import get_settings

logger = logging.getLogger("ledger.db")


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Engine for either backend.

    - SQLite: the file is shared by the request threads and the background
      tasks, so check_same_thread is off
    - anything else (Postgres): pre-ping pooled connections so a restarted
      server doesn't surface as a request error
    """
    kwargs: Dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return create_engine(url, **kwargs)


settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.db_echo)
# str(url) masks the password
logger.info("DB URL in use: %s", engine.url)


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    with Session(engine) as session:
        yield session


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create every ledger table that is missing. Used at startup and by tests;
    schema changes go through Alembic.
    """
    import ledger.models  # noqa: F401  # registers tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind or engine)

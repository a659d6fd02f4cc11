# alembic/env.py
# isort: skip_file
"""
Alembic environment for the ledger schema.

Plain words:
- the URL is DATABASE_URL (via ledger.config), or `-x db_url=...` on the command line
- ledger.models is imported so autogenerate sees every table
- on SQLite, ALTERs run in batch mode (table copy), Postgres alters in place
- partial unique indexes declare both sqlite_where and postgresql_where

Usage:
  alembic upgrade head
  alembic -x db_url=sqlite:///./scratch.db upgrade head
  alembic revision -m "..." --autogenerate
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

# the repo root holds the ledger package; alembic runs from anywhere
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from ledger.config import get_settings  # noqa: E402
import ledger.models  # noqa: E402,F401  registers tables on SQLModel.metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

db_url = context.get_x_argument(as_dictionary=True).get("db_url") or get_settings().database_url
# configparser treats "%" as interpolation
config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))

COMPARE_OPTIONS = dict(
    target_metadata=SQLModel.metadata,
    compare_type=True,
    compare_server_default=True,
)


def run_migrations_offline() -> None:
    """Emit the SQL instead of running it."""
    context.configure(
        url=db_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
            **COMPARE_OPTIONS,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

"""Alembic environment configuration."""

import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool, create_engine
from alembic import context

# Make the onemin_proxy package importable when run from the repo root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Import the base and models for autogeneration
from onemin_proxy.database.base import Base
from onemin_proxy.database.models import KVEntry  # noqa: F401
from onemin_proxy.database.factory import create_database
from onemin_proxy.config_loader import load_config


# this is the Alembic Config object, which provides
# access to the values set within the .ini file in use.
alembic_config = context.config

# Interpret the config file for Python logging.
if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)

target_metadata = Base.metadata


def get_database_url() -> str:
    """Get the database URL from the proxy configuration.

    Uses the same ``database`` section (and the same SQLite path
    resolution) as the running proxy.
    """
    cfg = load_config()
    db_config = cfg.get("database") or None
    if db_config and str(db_config.get("backend", "sqlite")).lower() == "memory":
        raise RuntimeError("The memory backend has no schema to migrate")
    return create_database(db_config).get_connection_string()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL without a DBAPI."""
    url = get_database_url()

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = create_engine(
        get_database_url(),
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

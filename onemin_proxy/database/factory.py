"""Database factory for creating interchangeable database instances."""

import logging
from typing import Any, Optional

from .base import DatabaseBase
from .postgres import PostgreSQLDatabase
from .sqlite import DEFAULT_SQLITE_PATH, SQLiteDatabase

logger = logging.getLogger("onemin-proxy")


def create_database(config: Optional[dict[str, Any]] = None) -> DatabaseBase:
    """Create a database instance based on configuration.

    Args:
        config: Database configuration dictionary. If None, a file-backed
            SQLite database is used.

    Raises:
        ValueError: If an unsupported database backend is specified.
    """
    if config is None:
        config = {
            "backend": "sqlite",
            "connection": {"sqlite": {"path": DEFAULT_SQLITE_PATH}},
        }

    backend = str(config.get("backend", "sqlite")).lower()

    if backend == "sqlite":
        instance: DatabaseBase = SQLiteDatabase(config)
    elif backend in ("postgres", "postgresql"):
        instance = PostgreSQLDatabase(config)
    else:
        raise ValueError(f"Unsupported database backend: {backend}. Supported backends: sqlite, postgres")

    logger.info(f"Database factory created {backend} database instance")
    return instance

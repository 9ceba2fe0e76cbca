"""SQLite database implementation."""

import logging
from pathlib import Path
from typing import Any

from sqlalchemy.pool import NullPool, StaticPool

from .base import DatabaseBase

logger = logging.getLogger("onemin-proxy")

DEFAULT_SQLITE_PATH = "data/onemin.db"


class SQLiteDatabase(DatabaseBase):
    """SQLite database implementation."""

    @property
    def backend_name(self) -> str:
        return "sqlite"

    def _db_path(self) -> str:
        sqlite_config = self.config.get("connection", {}).get("sqlite", {})
        return sqlite_config.get("path", DEFAULT_SQLITE_PATH)

    def get_connection_string(self) -> str:
        """Return the SQLite connection string.

        Relative paths resolve against the project root; the parent
        directory is created on demand.
        """
        db_path = self._db_path()

        if db_path == ":memory:":
            logger.debug("SQLite database: in-memory")
            return "sqlite:///:memory:"

        path = Path(db_path)
        if not path.is_absolute():
            project_root = Path(__file__).parent.parent.parent
            path = project_root / path
        path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"SQLite database path: {path}")
        return f"sqlite:///{path}"

    def get_pool_options(self) -> dict[str, Any]:
        # In-memory SQLite needs StaticPool to share the database across connections
        if self._db_path() == ":memory:":
            return {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        # File-based SQLite uses NullPool to avoid locking issues
        return {"poolclass": NullPool}

"""Engine and session lifecycle shared by the SQL backends."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

logger = logging.getLogger("onemin-proxy")

Base = declarative_base()


class DatabaseBase(ABC):
    """One SQLAlchemy engine per store, opened lazily by ``initialize``."""

    def __init__(self, config: dict[str, Any]) -> None:
        self.config = config
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    @abstractmethod
    def backend_name(self) -> str:
        ...

    @abstractmethod
    def get_connection_string(self) -> str:
        """SQLAlchemy URL, also read by the alembic environment."""

    def get_pool_options(self) -> dict[str, Any]:
        return {"pool_pre_ping": True, "pool_size": self.config.get("pool_size", 5)}

    def initialize(self) -> None:
        """Open the engine and create ``kv_entries`` when it is missing."""
        if self._engine is not None:
            return

        from . import models  # noqa: F401  registers KVEntry on Base.metadata

        self._engine = create_engine(self.get_connection_string(), **self.get_pool_options())
        self._session_factory = sessionmaker(bind=self._engine)
        Base.metadata.create_all(self._engine)
        logger.info(f"Credential store ready on {self.backend_name}")

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session committed on success and rolled back on error."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def close(self) -> None:
        if self._engine is None:
            return
        logger.info(f"Closing {self.backend_name} credential store")
        self._engine.dispose()
        self._engine = None
        self._session_factory = None

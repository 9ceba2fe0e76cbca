"""Key-value entry model backing the credential store."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.types import JSON

from ..base import Base


class KVEntry(Base):
    """A single JSON value stored under a string key."""

    __tablename__ = "kv_entries"

    key = Column(
        String(2048),
        primary_key=True,
        comment="Namespaced key, e.g. tokens/<secret>",
    )

    value = Column(
        JSON,
        nullable=False,
        comment="JSON document stored under the key",
    )

    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Last write timestamp",
    )

    def __repr__(self) -> str:
        return f"<KVEntry(key={self.key[:24]!r})>"

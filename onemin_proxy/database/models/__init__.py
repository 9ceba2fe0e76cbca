"""Database models for the proxy."""

from .kv_entry import KVEntry

__all__ = ["KVEntry"]

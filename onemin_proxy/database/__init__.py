"""Database support module.

Provides interchangeable SQLite and PostgreSQL storage for the credential
key-value store.
"""

from .base import Base, DatabaseBase
from .factory import create_database

__all__ = ["Base", "create_database", "DatabaseBase"]

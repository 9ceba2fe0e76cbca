"""Upstream credential storage, selection and expiry handling."""

from .models import Credential, SessionContext
from .pool import CredentialPool, extract_bearer
from .repository import CredentialRepository
from .store import DatabaseKeyValueStore, InMemoryKeyValueStore, KeyValueStore, create_store
from .sweeper import ExpirySweeper

__all__ = [
    "Credential",
    "CredentialPool",
    "CredentialRepository",
    "DatabaseKeyValueStore",
    "ExpirySweeper",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SessionContext",
    "create_store",
    "extract_bearer",
]

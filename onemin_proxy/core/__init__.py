"""Core module initialization."""

from .exceptions import (
    AuthenticationError,
    ConversationCreationError,
    CredentialExpiredError,
    InvalidCredentialError,
    NoCredentialAvailable,
    PayloadValidationError,
    ProxyError,
    SessionResolutionError,
    StreamDecodeError,
    UpstreamError,
)
from .upstream import UpstreamClient, format_httpx_error

__all__ = [
    "AuthenticationError",
    "ConversationCreationError",
    "CredentialExpiredError",
    "InvalidCredentialError",
    "NoCredentialAvailable",
    "PayloadValidationError",
    "ProxyError",
    "SessionResolutionError",
    "StreamDecodeError",
    "UpstreamClient",
    "UpstreamError",
    "format_httpx_error",
]

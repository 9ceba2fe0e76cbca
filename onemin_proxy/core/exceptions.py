"""Core exceptions for the proxy."""

from typing import Optional


class ProxyError(Exception):
    """Base exception for proxy errors.

    ``status_code`` is the HTTP status the error is surfaced with.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(ProxyError):
    """Raised when the caller's shared secret does not match."""

    status_code = 401


class NoCredentialAvailable(ProxyError):
    """Raised when no enabled, unexpired credential is in the pool."""

    status_code = 401


class SessionResolutionError(ProxyError):
    """Raised when the upstream identity lookup yields no team id."""

    status_code = 500


class ConversationCreationError(ProxyError):
    """Raised when the upstream refuses to open a conversation."""

    status_code = 500


class UpstreamError(ProxyError):
    """Raised when the provider answers a completion call with a non-success status."""

    def __init__(self, message: str, status_code: int = 502, body: str = "") -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class StreamDecodeError(ProxyError):
    """Malformed SSE payload. Recovered inside the stream transducer."""

    def __init__(self, message: str, payload: str = "") -> None:
        super().__init__(message, status_code=502)
        self.payload = payload


class PayloadValidationError(ProxyError):
    """Raised when an incoming request body is malformed."""

    status_code = 400

    def __init__(self, message: str, code: str = "invalid_request") -> None:
        super().__init__(message)
        self.code = code


class InvalidCredentialError(ProxyError):
    """Raised when a credential being registered is not a parseable JWT."""

    status_code = 400


class CredentialExpiredError(ProxyError):
    """Raised when re-enabling a credential whose expiry has passed."""

    status_code = 400

"""JWT claim inspection for upstream credentials.

Upstream credentials are JWTs signed by the provider; the proxy cannot and
does not verify the signature, it only reads the ``exp`` claim.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Optional

import jwt


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    expired: bool
    payload: Optional[dict[str, Any]]

    @property
    def expires_at_ms(self) -> Optional[int]:
        """The ``exp`` claim converted to epoch milliseconds."""
        if not self.payload:
            return None
        exp = self.payload.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool) or not exp:
            return None
        return int(exp * 1000)


def parse_claims(token: str) -> Optional[dict[str, Any]]:
    """Decode the payload segment of a JWT without verifying it."""
    if not token or token.count(".") != 2:
        return None
    try:
        payload = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.PyJWTError:
        return None
    return payload if isinstance(payload, dict) else None


def is_claims_expired(payload: dict[str, Any], now: Optional[float] = None) -> bool:
    exp = payload.get("exp")
    if not exp:
        return False
    current = int(time.time()) if now is None else int(now)
    try:
        return float(exp) < current
    except (TypeError, ValueError):
        return False


def validate_token(token: str, now: Optional[float] = None) -> TokenValidation:
    """Check a credential's format and whether its ``exp`` has passed."""
    payload = parse_claims(token)
    if payload is None:
        return TokenValidation(valid=False, expired=False, payload=None)
    return TokenValidation(
        valid=True,
        expired=is_claims_expired(payload, now),
        payload=payload,
    )

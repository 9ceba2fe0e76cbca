"""Credential selection for outbound upstream calls."""

from __future__ import annotations

import hmac
import logging
import random
from typing import Optional

from ..core.exceptions import AuthenticationError
from ..logging import mask_secret
from .models import Credential, now_ms
from .repository import CredentialRepository

logger = logging.getLogger("onemin-proxy")


def extract_bearer(auth_header: Optional[str]) -> Optional[str]:
    """Strip a case-insensitive ``Bearer`` prefix from an Authorization header."""
    if not auth_header:
        return None
    parts = auth_header.strip().split(None, 1)
    if not parts:
        return None
    if parts[0].lower() == "bearer":
        return parts[1].strip() if len(parts) > 1 else None
    return " ".join(parts)


def verify_shared_secret(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class CredentialPool:
    """Selects one usable credential at random.

    Selection is advisory: concurrent requests may receive the same
    credential and nothing is checked out or returned.
    """

    def __init__(
        self,
        repository: CredentialRepository,
        shared_secret: str,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.repository = repository
        self._shared_secret = shared_secret
        self._rng = rng or random.Random()

    async def usable_credentials(self, now: Optional[int] = None) -> list[Credential]:
        current = now_ms() if now is None else now
        return [c for c in await self.repository.list() if c.is_usable(current)]

    async def select_credential(self, provided_secret: Optional[str]) -> Optional[Credential]:
        """Pick a usable credential, or None when the pool has none.

        Raises:
            AuthenticationError: If ``provided_secret`` is not the shared secret.
        """
        if not verify_shared_secret(provided_secret, self._shared_secret):
            logger.warning("Rejected request with invalid shared secret")
            raise AuthenticationError("Invalid or expired token")

        candidates = await self.usable_credentials()
        logger.debug(f"Usable credentials: {len(candidates)}")
        if not candidates:
            logger.warning("No usable credentials available")
            return None

        selected = self._rng.choice(candidates)
        logger.debug(f"Selected credential {mask_secret(selected.secret)}")
        return selected

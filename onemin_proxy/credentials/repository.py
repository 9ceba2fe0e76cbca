"""Credential records on top of the key-value store."""

from __future__ import annotations

import logging
from typing import Optional

from ..core.exceptions import CredentialExpiredError, InvalidCredentialError
from ..logging import mask_secret
from .jwt_claims import validate_token
from .models import CREDENTIAL_PREFIX, Credential, SessionContext, credential_key, now_ms
from .store import KeyValueStore

logger = logging.getLogger("onemin-proxy")


class CredentialRepository:
    """Typed access to credential records.

    Every write is a full replace of the record; there is no merge.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def add(self, secret: str, note: str = "") -> Credential:
        """Register (or overwrite) a credential.

        ``expires_at`` is derived from the JWT ``exp`` claim here and never
        recomputed. A credential that is already expired is stored disabled.

        Raises:
            InvalidCredentialError: If ``secret`` is not a parseable JWT.
        """
        validation = validate_token(secret)
        if not validation.valid:
            raise InvalidCredentialError("Invalid token format")

        credential = Credential(
            secret=secret,
            note=note,
            created_at=now_ms(),
            disabled=validation.expired,
            expires_at=validation.expires_at_ms,
        )
        await self.store.set(credential_key(secret), credential.to_dict())
        logger.info(
            f"Registered credential {mask_secret(secret)} "
            f"(expires_at={credential.expires_at}, disabled={credential.disabled})"
        )
        return credential

    async def get(self, secret: str) -> Optional[Credential]:
        data = await self.store.get(credential_key(secret))
        if data is None:
            return None
        return Credential.from_dict(data)

    async def save(self, credential: Credential) -> None:
        await self.store.set(credential_key(credential.secret), credential.to_dict())

    async def list(self) -> list[Credential]:
        records = await self.store.list(CREDENTIAL_PREFIX)
        credentials = []
        for data in records:
            try:
                credentials.append(Credential.from_dict(data))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed credential record: {exc}")
        return credentials

    async def disable(self, secret: str) -> bool:
        credential = await self.get(secret)
        if credential is None:
            return False
        credential.disabled = True
        await self.save(credential)
        logger.info(f"Disabled credential {mask_secret(secret)}")
        return True

    async def enable(self, secret: str) -> bool:
        """Re-enable a credential.

        Raises:
            CredentialExpiredError: If the credential's expiry has passed.
        """
        credential = await self.get(secret)
        if credential is None:
            return False
        if validate_token(secret).expired or credential.is_expired():
            raise CredentialExpiredError("Cannot enable expired token")
        credential.disabled = False
        await self.save(credential)
        logger.info(f"Enabled credential {mask_secret(secret)}")
        return True

    async def delete(self, secret: str) -> bool:
        await self.store.delete(credential_key(secret))
        logger.info(f"Deleted credential {mask_secret(secret)}")
        return True

    async def update_note(self, secret: str, note: str) -> bool:
        credential = await self.get(secret)
        if credential is None:
            return False
        credential.note = note
        await self.save(credential)
        return True

    async def cache_session_context(self, secret: str, context: SessionContext) -> bool:
        """Replace the cached session context on a credential record.

        Returns False when the record no longer exists.
        """
        credential = await self.get(secret)
        if credential is None:
            return False
        credential.session_context = context
        await self.save(credential)
        return True

    async def check_usable(self, secret: str) -> bool:
        """Report whether a credential is usable, disabling it if found expired."""
        credential = await self.get(secret)
        if credential is None or credential.disabled:
            return False
        if credential.is_expired() or validate_token(secret).expired:
            await self.disable(secret)
            return False
        return True

    async def disable_expired(self) -> int:
        """Disable every enabled credential whose expiry has passed.

        Returns:
            The number of credentials disabled.
        """
        count = 0
        for credential in await self.list():
            if credential.disabled:
                continue
            if credential.is_expired() or validate_token(credential.secret).expired:
                await self.disable(credential.secret)
                count += 1
        return count

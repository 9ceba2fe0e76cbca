"""Per-credential upstream session context (team scoping) with a TTL cache."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Sequence

import httpx

from ..config_loader import DEFAULT_SESSION_CACHE_TTL_MS
from ..core.exceptions import SessionResolutionError
from ..core.upstream import UpstreamClient, format_httpx_error
from ..credentials.models import Credential, SessionContext, now_ms
from ..credentials.repository import CredentialRepository
from ..logging import mask_secret

logger = logging.getLogger("onemin-proxy")

# Candidate locations of each field in the /users reply, first non-empty wins.
# The upstream schema is not stable, so the order matters.
TEAM_ID_PATHS: tuple[tuple[Any, ...], ...] = (
    ("user", "teams", 0, "teamId"),
    ("teams", 0, "teamId"),
    ("teams", 0, "uuid"),
    ("teamId",),
)
USER_ID_PATHS: tuple[tuple[Any, ...], ...] = (
    ("user", "uuid"),
    ("uuid",),
    ("userId",),
)
USER_NAME_PATHS: tuple[tuple[Any, ...], ...] = (
    ("user", "teams", 0, "userName"),
    ("name",),
    ("userName",),
)


def dig(data: Any, path: Sequence[Any]) -> Any:
    """Follow ``path`` through nested dicts/lists, returning None on any miss."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
        if current is None:
            return None
    return current


def first_present(data: Any, paths: Sequence[Sequence[Any]]) -> Optional[str]:
    for path in paths:
        value = dig(data, path)
        if value is not None and value != "":
            return str(value)
    return None


class SessionContextResolver:
    """Maps a credential to its upstream team/user context.

    Concurrent cache misses for the same credential each call upstream and
    the last write to the store wins.
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        repository: CredentialRepository,
        ttl_ms: int = DEFAULT_SESSION_CACHE_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.upstream = upstream
        self.repository = repository
        self.ttl_ms = ttl_ms
        self._clock = clock

    async def resolve(self, credential: Credential) -> SessionContext:
        cached = credential.session_context
        now = self._clock()
        if cached is not None and cached.is_fresh(self.ttl_ms, now):
            logger.debug(f"Using cached session context (teamId={cached.team_id})")
            return cached

        logger.debug(f"Session cache miss for {mask_secret(credential.secret)}, fetching identity")
        try:
            resp = await self.upstream.get_user(credential.secret)
        except httpx.HTTPError as exc:
            raise SessionResolutionError(
                f"Failed to get user info: {format_httpx_error(exc)}"
            ) from exc

        if resp.status_code >= 400:
            logger.warning(f"Identity request failed with status {resp.status_code}: {resp.text[:500]}")
            raise SessionResolutionError("Failed to get user info")

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise SessionResolutionError("Failed to get user info") from exc

        team_id = first_present(data, TEAM_ID_PATHS)
        if not team_id:
            logger.warning("No teamId found in identity response")
            raise SessionResolutionError("Failed to get user info")

        context = SessionContext(
            team_id=team_id,
            cached_at=self._clock(),
            user_id=first_present(data, USER_ID_PATHS),
            user_name=first_present(data, USER_NAME_PATHS),
        )

        if await self.repository.cache_session_context(credential.secret, context):
            logger.debug(f"Session context cached for teamId={team_id}")
        else:
            logger.info(f"Credential {mask_secret(credential.secret)} vanished before caching session context")
        credential.session_context = context
        return context

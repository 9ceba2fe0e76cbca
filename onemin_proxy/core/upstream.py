"""HTTP client for the 1min.ai upstream API."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from ..config_loader import DEFAULT_UPSTREAM_BASE_URL
from ..logging import mask_secret

logger = logging.getLogger("onemin-proxy")

# No timeouts: a hung upstream call hangs the request that made it
UPSTREAM_TIMEOUT = httpx.Timeout(None)


def format_httpx_error(exc: httpx.HTTPError, url: Optional[str] = None) -> str:
    """Produce a detailed, user-facing description of an httpx error."""
    parts = [exc.__class__.__name__]
    message = str(exc).strip()
    if message:
        parts.append(message)
    try:
        request = exc.request
    except RuntimeError:
        request = None
    if request is not None:
        parts.append(f"request={request.method} {request.url}")
    elif url:
        parts.append(f"url={url}")
    return "; ".join(parts)


class UpstreamClient:
    """Thin wrapper around one shared ``httpx.AsyncClient``.

    Every call authenticates with ``x-auth-token: Bearer <secret>``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_UPSTREAM_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=UPSTREAM_TIMEOUT,
            transport=transport,
            follow_redirects=True,
        )

    @staticmethod
    def _headers(secret: str, accept: str = "application/json", json_body: bool = False) -> dict[str, str]:
        headers = {
            "x-auth-token": f"Bearer {secret}",
            "accept": accept,
        }
        if json_body:
            headers["content-type"] = "application/json"
        return headers

    async def get_user(self, secret: str) -> httpx.Response:
        logger.debug(f"Fetching upstream identity for {mask_secret(secret)}")
        return await self._client.get("/users", headers=self._headers(secret))

    async def create_conversation(
        self, secret: str, team_id: str, body: Mapping[str, Any]
    ) -> httpx.Response:
        return await self._client.post(
            f"/teams/{team_id}/features/conversations",
            headers=self._headers(secret, json_body=True),
            json=dict(body),
        )

    async def complete(
        self, secret: str, team_id: str, payload: Mapping[str, Any]
    ) -> httpx.Response:
        """Non-streaming completion call."""
        return await self._client.post(
            f"/teams/{team_id}/features/sse",
            params={"isStreaming": "false"},
            headers=self._headers(secret, json_body=True),
            json=dict(payload),
        )

    async def open_stream(
        self, secret: str, team_id: str, payload: Mapping[str, Any]
    ) -> httpx.Response:
        """Streaming completion call.

        The returned response body has not been read; the caller owns it and
        must ``aclose()`` it.
        """
        request = self._client.build_request(
            "POST",
            f"/teams/{team_id}/features/sse",
            params={"isStreaming": "true"},
            headers=self._headers(secret, accept="text/event-stream", json_body=True),
            json=dict(payload),
        )
        return await self._client.send(request, stream=True)

    async def aclose(self) -> None:
        await self._client.aclose()

"""Chat completion orchestration.

Flow per request:
  select credential -> resolve session context -> open conversation ->
  translate -> upstream call -> transducer (stream) or assembler.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from ..core.exceptions import NoCredentialAvailable, ProxyError, UpstreamError
from ..core.upstream import UpstreamClient, format_httpx_error
from ..credentials.models import Credential
from ..credentials.pool import CredentialPool
from ..logging import mask_secret
from ..session.resolver import SessionContextResolver
from .assembler import assemble
from .conversation import ConversationOpener
from .stream_adapter import HttpxStreamReader, SSEToChatCompletionTransducer
from .translator import build_prompt, translate, validate_chat_request

logger = logging.getLogger("onemin-proxy")


@dataclass
class PreparedCompletion:
    """Everything needed to issue the upstream completion call."""

    credential: Credential
    team_id: str
    requested_model: str
    stream: bool
    payload: dict[str, Any]


class ChatCompletionService:
    def __init__(
        self,
        pool: CredentialPool,
        resolver: SessionContextResolver,
        opener: ConversationOpener,
        upstream: UpstreamClient,
    ) -> None:
        self.pool = pool
        self.resolver = resolver
        self.opener = opener
        self.upstream = upstream

    async def prepare(self, provided_secret: Optional[str], payload: Any) -> PreparedCompletion:
        """Authenticate, validate and build the upstream payload.

        Raises:
            AuthenticationError: Shared secret mismatch.
            NoCredentialAvailable: The pool has no usable credential.
            PayloadValidationError: Malformed request body.
            SessionResolutionError: No team id for the chosen credential.
            ConversationCreationError: Upstream refused the conversation.
        """
        credential = await self.pool.select_credential(provided_secret)
        if credential is None:
            raise NoCredentialAvailable("Invalid or expired token")

        request = validate_chat_request(payload)
        requested_model = request["model"]
        stream = bool(request.get("stream"))
        logger.info(
            f"Processing request for model {requested_model}, stream={stream}, "
            f"credential={mask_secret(credential.secret)}"
        )

        context = await self.resolver.resolve(credential)
        prompt = build_prompt(request["messages"])
        conversation_id = await self.opener.open(credential, context.team_id, prompt)
        upstream_payload = translate(request, conversation_id, prompt=prompt)

        return PreparedCompletion(
            credential=credential,
            team_id=context.team_id,
            requested_model=requested_model,
            stream=stream,
            payload=upstream_payload,
        )

    async def complete(self, prepared: PreparedCompletion) -> dict[str, Any]:
        """Issue a non-streaming completion and assemble the reply."""
        try:
            resp = await self.upstream.complete(
                prepared.credential.secret, prepared.team_id, prepared.payload
            )
        except httpx.HTTPError as exc:
            detail = format_httpx_error(exc)
            logger.error(f"Upstream completion request failed: {detail}")
            raise ProxyError(f"Request failed: {detail}") from exc

        if not resp.is_success:
            _raise_upstream_status(resp.status_code, resp.text)

        try:
            reply = resp.json()
        except json.JSONDecodeError as exc:
            raise UpstreamError("Upstream returned invalid JSON", body=resp.text[:500]) from exc

        return assemble(reply, prepared.requested_model)

    async def stream(self, prepared: PreparedCompletion) -> SSEToChatCompletionTransducer:
        """Open the upstream stream and wrap it in a transducer.

        The upstream response is closed here if it cannot be handed over;
        afterwards the transducer owns it.
        """
        try:
            resp = await self.upstream.open_stream(
                prepared.credential.secret, prepared.team_id, prepared.payload
            )
        except httpx.HTTPError as exc:
            detail = format_httpx_error(exc)
            logger.error(f"Upstream stream request failed: {detail}")
            raise ProxyError(f"Request failed: {detail}") from exc

        if not resp.is_success:
            try:
                body = (await resp.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                body = ""
            finally:
                await resp.aclose()
            _raise_upstream_status(resp.status_code, body)

        logger.debug(f"Upstream stream opened for model {prepared.requested_model}")
        return SSEToChatCompletionTransducer(HttpxStreamReader(resp), prepared.requested_model)

    async def handle(self, provided_secret: Optional[str], payload: Mapping[str, Any]):
        """Run a full request; returns a completion dict or a transducer."""
        prepared = await self.prepare(provided_secret, payload)
        if prepared.stream:
            return await self.stream(prepared)
        return await self.complete(prepared)


def _raise_upstream_status(status_code: int, body: str) -> None:
    logger.warning(f"Upstream completion returned {status_code}: {body[:500]}")
    message = f"Upstream error: {status_code}"
    if body:
        message = f"{message} {body[:500]}"
    raise UpstreamError(message, status_code=status_code, body=body)

"""Opens the upstream conversation container a completion is posted into."""

from __future__ import annotations

import json
import logging

import httpx

from ..core.exceptions import ConversationCreationError
from ..core.upstream import UpstreamClient, format_httpx_error
from ..credentials.models import Credential
from .translator import REQUEST_TYPE, conversation_title

logger = logging.getLogger("onemin-proxy")


class ConversationOpener:
    def __init__(self, upstream: UpstreamClient) -> None:
        self.upstream = upstream

    async def open(self, credential: Credential, team_id: str, title_hint: str) -> str:
        """Create a CHAT_WITH_AI conversation and return its uuid.

        Raises:
            ConversationCreationError: On a non-success status or a reply
                without ``conversation.uuid``. Never retried.
        """
        body = {
            "type": REQUEST_TYPE,
            "title": conversation_title(title_hint),
            "fileList": [],
            "youtubeUrl": "",
        }
        try:
            resp = await self.upstream.create_conversation(credential.secret, team_id, body)
        except httpx.HTTPError as exc:
            raise ConversationCreationError(
                f"Failed to create conversation: {format_httpx_error(exc)}"
            ) from exc

        if resp.status_code >= 400:
            logger.warning(f"Conversation creation failed with status {resp.status_code}: {resp.text[:500]}")
            raise ConversationCreationError("Failed to create conversation")

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise ConversationCreationError("Failed to create conversation") from exc

        conversation = data.get("conversation") if isinstance(data, dict) else None
        conversation_id = conversation.get("uuid") if isinstance(conversation, dict) else None
        if not conversation_id:
            logger.warning("Conversation reply missing conversation.uuid")
            raise ConversationCreationError("Failed to create conversation")

        logger.debug(f"Opened upstream conversation {conversation_id}")
        return str(conversation_id)

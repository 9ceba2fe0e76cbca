"""OpenAI Chat Completions -> 1min.ai request translation.

The upstream takes a single text prompt, so the whole message list is
flattened into one string:

    system:
    You are terse.

    user:
    hi

Only text segments of array-valued content survive; images and other
segment types are dropped.
"""

from __future__ import annotations

import random
import time
from typing import Any, Mapping, Optional, Sequence

from ..core.exceptions import PayloadValidationError

REQUEST_TYPE = "CHAT_WITH_AI"

# Common OpenAI/Anthropic names -> upstream model identifiers
MODEL_MAP: dict[str, str] = {
    "gpt-4": "gpt-5",
    "gpt-4o": "gpt-5",
    "gpt-4-turbo": "gpt-5.1",
    "gpt-3.5-turbo": "gpt-5-mini",
    "claude-3-opus": "claude-opus-4-1-20250805",
    "claude-3-sonnet": "claude-sonnet-4-20250514",
    "claude-3-haiku": "claude-3-haiku-20240307",
}

VALID_ROLES = frozenset({"system", "user", "assistant"})
TITLE_MAX_CHARS = 50


def map_model(model: str) -> str:
    """Map a requested model name; unmapped names pass through unchanged."""
    return MODEL_MAP.get(model, model)


def _content_text(content: Any) -> str:
    if isinstance(content, list):
        return "\n".join(
            segment["text"]
            for segment in content
            if isinstance(segment, Mapping)
            and segment.get("type") == "text"
            and isinstance(segment.get("text"), str)
            and segment["text"]
        )
    if content is None:
        return ""
    return str(content)


def build_prompt(messages: Sequence[Mapping[str, Any]]) -> str:
    """Render every message as ``"<role>:\\n<content>"`` joined by blank lines."""
    return "\n\n".join(
        f"{message.get('role')}:\n{_content_text(message.get('content'))}"
        for message in messages
    )


def conversation_title(prompt: str) -> str:
    return prompt[:TITLE_MAX_CHARS] or "New Chat"


def message_group(now: Optional[float] = None, rng: Optional[random.Random] = None) -> str:
    """Per-request correlation tag: epoch millis plus a 0-99 random suffix."""
    millis = int((time.time() if now is None else now) * 1000)
    suffix = (rng or random).randrange(100)
    return f"{millis}_{suffix}"


def validate_chat_request(payload: Any) -> dict[str, Any]:
    """Check the shape of an inbound chat completion request.

    Raises:
        PayloadValidationError: If the payload is not a usable chat request.
    """
    if not isinstance(payload, Mapping):
        raise PayloadValidationError("Request body must be a JSON object", code="invalid_json_shape")

    model = payload.get("model")
    if not isinstance(model, str) or not model:
        raise PayloadValidationError("You must provide a model parameter", code="missing_parameter")

    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise PayloadValidationError("You must provide a messages array", code="missing_parameter")

    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            raise PayloadValidationError(f"messages[{index}] must be an object")
        if message.get("role") not in VALID_ROLES:
            raise PayloadValidationError(
                f"messages[{index}].role must be one of system, user, assistant"
            )
        content = message.get("content")
        # Assistant turns carrying only tool calls arrive with null content.
        if content is not None and not isinstance(content, (str, list)):
            raise PayloadValidationError(f"messages[{index}].content must be a string or an array")

    return dict(payload)


def translate(
    request: Mapping[str, Any],
    conversation_id: str,
    prompt: Optional[str] = None,
) -> dict[str, Any]:
    """Build the upstream completion payload for a chat request.

    Args:
        request: Validated OpenAI-shaped chat request.
        conversation_id: Identifier returned by the conversation opener.
        prompt: Pre-built prompt, to avoid rendering the messages twice.
    """
    if prompt is None:
        prompt = build_prompt(request["messages"])
    return {
        "type": REQUEST_TYPE,
        "conversationId": conversation_id,
        "model": map_model(request["model"]),
        "promptObject": {
            "prompt": prompt,
            "imageList": [],
            "isMixed": False,
            "webSearch": False,
            "youtubeUrl": "",
            "numOfSite": 2,
            "maxWord": 1000,
            "memory": False,
            "historyMessageLimit": 8,
        },
        "metadata": {
            "messageGroup": message_group(),
        },
    }

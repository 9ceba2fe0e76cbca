"""Builds a non-streaming OpenAI chat completion from a 1min.ai reply."""

from __future__ import annotations

import time
from typing import Any, Optional


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _token_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return 0


def extract_content(reply: Any) -> str:
    """First element of ``aiRecordDetail.resultObject``, or ``""``."""
    detail = _as_dict(_as_dict(reply).get("aiRecordDetail"))
    result = detail.get("resultObject")
    if not isinstance(result, list) or not result:
        return ""
    first = result[0]
    if first is None:
        return ""
    return first if isinstance(first, str) else str(first)


def extract_usage(reply: Any) -> dict[str, int]:
    metadata = _as_dict(_as_dict(_as_dict(reply).get("aiRecord")).get("metadata"))
    prompt_tokens = _token_count(metadata.get("inputToken"))
    completion_tokens = _token_count(metadata.get("outputToken"))
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


def assemble(
    reply: Any,
    requested_model: str,
    now: Optional[float] = None,
) -> dict[str, Any]:
    """Shape an upstream completion reply as an OpenAI ``chat.completion``.

    The model reported back is the caller's requested name, never the mapped
    upstream identifier. Missing fields degrade to empty content and zero
    usage rather than failing.
    """
    timestamp = time.time() if now is None else now
    return {
        "id": f"chatcmpl-{int(timestamp * 1000)}",
        "object": "chat.completion",
        "created": int(timestamp),
        "model": requested_model,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": extract_content(reply),
                },
                "finish_reason": "stop",
            }
        ],
        "usage": extract_usage(reply),
    }

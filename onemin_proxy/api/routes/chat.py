"""OpenAI-compatible chat completions endpoint."""

import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from ...chat.stream_adapter import SSEToChatCompletionTransducer
from ...context import get_context
from ...core.exceptions import PayloadValidationError
from ...credentials.pool import extract_bearer

logger = logging.getLogger("onemin-proxy")

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def chat_completions(request: Request) -> Response:
    """Chat completions endpoint - OpenAI compatible.

    POST /v1/chat/completions

    Returns a ``chat.completion`` object, or a ``text/event-stream`` of
    ``chat.completion.chunk`` frames ending in ``data: [DONE]`` when the
    request sets ``stream``.
    """
    logger.info("Received chat completions request")
    context = get_context(request)

    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON payload: {exc}")
        raise PayloadValidationError(f"Invalid request: {exc}", code="invalid_json") from exc

    provided_secret = extract_bearer(request.headers.get("authorization"))
    result = await context.service.handle(provided_secret, payload)

    if isinstance(result, SSEToChatCompletionTransducer):
        return StreamingResponse(
            result.iter_frames(),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
            # Runs even when the client left before the first frame was pulled
            background=BackgroundTask(result.cancel),
        )

    logger.info(f"Completion for model {result.get('model')} finished")
    return JSONResponse(result)

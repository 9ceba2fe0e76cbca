"""Models listing endpoint - OpenAI compatible."""

import logging

from fastapi import Request

from ...context import get_context

logger = logging.getLogger("onemin-proxy")


async def list_models(request: Request) -> dict:
    """List available models in OpenAI API format.

    GET /v1/models

    Returns:
        A dictionary containing the ACTIVE models of the catalog.
    """
    logger.info("Received models list request")
    catalog = get_context(request).catalog
    return {
        "object": "list",
        "data": catalog.active_models(),
    }

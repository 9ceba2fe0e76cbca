"""Admin endpoints for upstream credential management.

Every endpoint requires ``Authorization: Bearer <auth_secret>``.
"""

import json
import logging
from typing import Any

from fastapi import Request

from ...context import AppContext, get_context
from ...core.exceptions import AuthenticationError, PayloadValidationError
from ...credentials.pool import extract_bearer, verify_shared_secret

logger = logging.getLogger("onemin-proxy")


def _require_admin(request: Request) -> AppContext:
    """Return the app context if the request carries the shared secret."""
    context = get_context(request)
    provided = extract_bearer(request.headers.get("authorization"))
    if not verify_shared_secret(provided, context.settings.auth_secret):
        logger.warning(f"Rejected admin request to {request.url.path}")
        raise AuthenticationError("Unauthorized")
    return context


async def _read_json_object(request: Request) -> dict[str, Any]:
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        raise PayloadValidationError(f"Invalid JSON payload: {exc}", code="invalid_json") from exc
    if not isinstance(payload, dict):
        raise PayloadValidationError("Request body must be a JSON object", code="invalid_json_shape")
    return payload


async def add_token(request: Request) -> dict[str, Any]:
    """Register an upstream credential.

    POST /admin/tokens  {"token": "...", "note": "..."}
    """
    context = _require_admin(request)
    payload = await _read_json_object(request)

    token = payload.get("token")
    if not isinstance(token, str) or not token.strip():
        raise PayloadValidationError("token is required", code="missing_parameter")
    note = payload.get("note") or ""

    await context.repository.add(token.strip(), str(note))
    return {"success": True}


async def list_tokens(request: Request) -> dict[str, Any]:
    """GET /admin/tokens"""
    context = _require_admin(request)
    credentials = await context.repository.list()
    return {"tokens": [credential.to_dict() for credential in credentials]}


async def disable_token(token: str, request: Request) -> dict[str, Any]:
    """POST /admin/tokens/{token}/disable"""
    context = _require_admin(request)
    return {"success": await context.repository.disable(token)}


async def enable_token(token: str, request: Request) -> dict[str, Any]:
    """POST /admin/tokens/{token}/enable

    Enabling a credential whose expiry has passed fails with 400.
    """
    context = _require_admin(request)
    return {"success": await context.repository.enable(token)}


async def update_token_note(token: str, request: Request) -> dict[str, Any]:
    """PUT /admin/tokens/{token}/note  {"note": "..."}"""
    context = _require_admin(request)
    payload = await _read_json_object(request)
    note = payload.get("note")
    if note is None:
        note = ""
    return {"success": await context.repository.update_note(token, str(note))}


async def token_status(token: str, request: Request) -> dict[str, Any]:
    """GET /admin/tokens/{token}/status

    An expired credential found here is disabled on the spot.
    """
    context = _require_admin(request)
    return {"valid": await context.repository.check_usable(token)}


async def delete_token(token: str, request: Request) -> dict[str, Any]:
    """DELETE /admin/tokens/{token}"""
    context = _require_admin(request)
    return {"success": await context.repository.delete(token)}

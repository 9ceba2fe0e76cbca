"""API routes for the proxy."""

from .admin import (
    add_token,
    delete_token,
    disable_token,
    enable_token,
    list_tokens,
    token_status,
    update_token_note,
)
from .chat import chat_completions
from .models import list_models

__all__ = [
    "add_token",
    "chat_completions",
    "delete_token",
    "disable_token",
    "enable_token",
    "list_models",
    "list_tokens",
    "token_status",
    "update_token_note",
]

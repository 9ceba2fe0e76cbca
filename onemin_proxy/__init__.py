"""onemin-proxy - OpenAI-compatible proxy for the 1min.ai API

Exposes POST /v1/chat/completions on top of 1min.ai's conversation and
SSE endpoints, rotating through a pool of registered 1min.ai tokens.

This module provides:
- create_app: FastAPI application factory
- CredentialPool / CredentialRepository: upstream token storage and selection
- SSEToChatCompletionTransducer: live 1min.ai SSE -> OpenAI chunk conversion

Example:
    >>> from onemin_proxy.main import create_app
    >>> import uvicorn
    >>> uvicorn.run(create_app(), host="0.0.0.0", port=8000)
"""

from .main import create_app
from .chat import ChatCompletionService, SSEToChatCompletionTransducer
from .config_loader import ProxySettings, build_settings, load_config
from .credentials import CredentialPool, CredentialRepository
from .logging import logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    "ChatCompletionService",
    "CredentialPool",
    "CredentialRepository",
    "ProxySettings",
    "SSEToChatCompletionTransducer",
    "build_settings",
    "create_app",
    "load_config",
    "logger",
    "setup_logging",
]

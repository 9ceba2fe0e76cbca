"""Application context shared by the route handlers.

Built once at startup and stored on ``app.state.context`` so handlers can
reach the services without importing the main module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx
from fastapi import Request

from .chat.conversation import ConversationOpener
from .chat.service import ChatCompletionService
from .config_loader import ProxySettings, resolve_config_path
from .core.upstream import UpstreamClient
from .credentials.pool import CredentialPool
from .credentials.repository import CredentialRepository
from .credentials.store import KeyValueStore, create_store
from .credentials.sweeper import ExpirySweeper
from .models_catalog import ModelCatalog
from .session.resolver import SessionContextResolver

logger = logging.getLogger("onemin-proxy")


@dataclass
class AppContext:
    settings: ProxySettings
    store: KeyValueStore
    repository: CredentialRepository
    pool: CredentialPool
    upstream: UpstreamClient
    resolver: SessionContextResolver
    opener: ConversationOpener
    service: ChatCompletionService
    catalog: ModelCatalog
    sweeper: ExpirySweeper

    async def aclose(self) -> None:
        """Stop background work and release the upstream client and store."""
        await self.sweeper.stop()
        await self.upstream.aclose()
        self.store.close()
        logger.info("Application context closed")


def build_context(
    settings: ProxySettings,
    db_config: Optional[Mapping[str, Any]] = None,
    *,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """Wire every service from resolved settings.

    Args:
        settings: Resolved proxy settings.
        db_config: The ``database`` config section, used when no store is given.
        store: Pre-built key-value store (tests pass an in-memory one).
        transport: Optional httpx transport for upstream calls.
    """
    if store is None:
        store = create_store(dict(db_config or {}))
    repository = CredentialRepository(store)
    upstream = UpstreamClient(settings.upstream_base_url, transport=transport)
    pool = CredentialPool(repository, settings.auth_secret)
    resolver = SessionContextResolver(upstream, repository, ttl_ms=settings.session_cache_ttl_ms)
    opener = ConversationOpener(upstream)
    return AppContext(
        settings=settings,
        store=store,
        repository=repository,
        pool=pool,
        upstream=upstream,
        resolver=resolver,
        opener=opener,
        service=ChatCompletionService(pool, resolver, opener, upstream),
        catalog=ModelCatalog(resolve_config_path(settings.models_path)),
        sweeper=ExpirySweeper(repository, settings.auto_cleanup_interval_seconds),
    )


def get_context(request: Request) -> AppContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Application context not initialized. Was the app built by create_app?")
    return context

"""Periodic background job that disables expired credentials."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .repository import CredentialRepository

logger = logging.getLogger("onemin-proxy")


class ExpirySweeper:
    """Runs ``CredentialRepository.disable_expired`` on a fixed interval."""

    def __init__(self, repository: CredentialRepository, interval_seconds: float) -> None:
        self.repository = repository
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def sweep_once(self) -> int:
        count = await self.repository.disable_expired()
        if count > 0:
            logger.info(f"[Auto Cleanup] Disabled {count} expired tokens")
        return count

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception as exc:
                # The next tick retries; one failed scan must not end the loop
                logger.error(f"Expired credential sweep failed: {exc}")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Periodic background sweeps.

Two fixed-interval jobs run for the lifetime of the process:

* expired provider tokens are purged every ``TOKEN_SWEEP_INTERVAL``
  seconds (default 60)
* expired admin sessions are purged every ``SESSION_SWEEP_INTERVAL``
  seconds (default 3600)

A failing tick is logged and the loop carries on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from visleg.auth.session import get_session_store
from visleg.db.session import get_db_session
from visleg.db.store import CredentialStore
from visleg.provider.token import purge_expired_tokens

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run an async job on a fixed interval in a background task."""

    def __init__(self, name: str, interval: float, job: Callable[[], Awaitable[object]]):
        self.name = name
        self.interval = interval
        self._job = job
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the loop. Calling ``start()`` when already running is a no-op."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._worker(), name=self.name)
        logger.info("Background task %s started (interval=%ss)", self.name, self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Background task %s stopped", self.name)

    async def run_once(self) -> None:
        """Run one tick, logging instead of raising on failure."""
        try:
            await self._job()
            self.runs += 1
        except asyncio.CancelledError:
            raise
        except Exception:
            self.failures += 1
            logger.exception("Background task %s failed", self.name)

    async def _worker(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval)
            await self.run_once()


async def sweep_expired_tokens() -> int:
    with get_db_session() as db:
        return purge_expired_tokens(CredentialStore(db))


async def sweep_expired_sessions() -> int:
    return await get_session_store().cleanup_expired()


_tasks: list[PeriodicTask] = []


async def start_background_tasks() -> None:
    from visleg.config import SESSION_SWEEP_INTERVAL, TOKEN_SWEEP_INTERVAL

    if _tasks:
        return
    _tasks.extend([
        PeriodicTask("token-sweep", TOKEN_SWEEP_INTERVAL, sweep_expired_tokens),
        PeriodicTask("session-sweep", SESSION_SWEEP_INTERVAL, sweep_expired_sessions),
    ])
    for task in _tasks:
        await task.start()


async def stop_background_tasks() -> None:
    for task in _tasks:
        await task.stop()
    _tasks.clear()

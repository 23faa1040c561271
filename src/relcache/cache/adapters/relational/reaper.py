# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Background sweep that deletes expired scalar entries."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from relcache.cache.adapters.relational.models import cache_kvs
from relcache.cache.adapters.relational.session import session_scope
from relcache.cache.types import utcnow

logger = logging.getLogger(__name__)


class ExpiryReaper:
    """Periodically purges ``cache_kvs`` rows whose expiry has passed.

    Reads already hide expired rows; the reaper only reclaims space. It
    sleeps *initial_delay*, then sweeps every *interval* until stopped.
    A failed sweep is logged and retried on the next tick.

    Usage::

        reaper = ExpiryReaper(session_factory)
        await reaper.start()
        # ... process runs ...
        await reaper.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        initial_delay: timedelta = timedelta(minutes=5),
        interval: timedelta = timedelta(minutes=1),
    ) -> None:
        self._session_factory = session_factory
        self._initial_delay = initial_delay
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Spawn the sweep loop; a second call while running is a no-op."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="relcache-expiry-reaper")
        logger.info(
            "Expiry reaper started (initial_delay=%ss, interval=%ss)",
            self._initial_delay.total_seconds(),
            self._interval.total_seconds(),
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expiry reaper stopped")

    async def reap_once(self) -> int:
        """Delete every expired entry now. Returns the number of rows removed."""
        async with session_scope(self._session_factory) as session:
            result = await session.execute(delete(cache_kvs).where(cache_kvs.c.expire_time <= utcnow()))
        return int(result.rowcount or 0)

    async def _run(self) -> None:
        await asyncio.sleep(self._initial_delay.total_seconds())
        while True:
            logger.info("Cleaning expired cache entries")
            try:
                removed = await self.reap_once()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to clean expired cache entries")
            else:
                logger.info("Cleaned %d expired cache entries", removed)
            await asyncio.sleep(self._interval.total_seconds())

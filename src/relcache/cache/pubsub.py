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
"""Polling publish/subscribe over an append-only message log.

A :class:`Subscription` owns one background task that polls its
:class:`MessageLog` every ``poll_interval`` for messages newer than its
delivery cursor, hands them to a bounded buffer in id order, and persists
the cursor after each hand-off. Delivery is at-least-once: a crash between
hand-off and cursor persistence can redeliver a message.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from datetime import timedelta
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_END = object()


class MessageLog(Protocol):
    """Storage side of a subscription: the message log plus cursor rows."""

    async def attach(self, channel: str, subscriber: str) -> int: ...

    async def fetch(self, channel: str, after_id: int, limit: int) -> list[tuple[int, str]]: ...

    async def advance(self, channel: str, subscriber: str, message_id: int) -> None: ...

    async def detach(self, channel: str, subscriber: str) -> None: ...


class Subscription:
    """Receive-only stream of payloads published on one channel.

    Iterate with ``async for``; call :meth:`close` (or leave an
    ``async with`` block) to detach. Payloads already buffered when the
    subscription closes are still delivered before iteration ends.
    """

    def __init__(
        self,
        log: MessageLog,
        channel: str,
        *,
        poll_interval: timedelta = timedelta(milliseconds=100),
        batch_size: int = 10,
        buffer_size: int = 100,
        subscriber: str | None = None,
    ) -> None:
        self.channel = channel
        self.subscriber = subscriber or f"sub_{uuid.uuid4().hex}"
        self._log = log
        self._poll_seconds = poll_interval.total_seconds()
        self._batch_size = batch_size
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size)
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._last_id = -1
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_delivered_id(self) -> int:
        return self._last_id

    async def start(self) -> Subscription:
        """Create the cursor row and spawn the polling task."""
        self._last_id = await self._log.attach(self.channel, self.subscriber)
        self._task = asyncio.create_task(self._poll_loop(), name=f"relcache-subscribe-{self.channel}")
        logger.debug("Subscriber %s attached to channel '%s'", self.subscriber, self.channel)
        return self

    async def close(self) -> None:
        """Stop polling, end the iteration and delete the cursor row."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        # A consumer blocked on an empty buffer needs the marker to wake up.
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(_END)
        await self._log.detach(self.channel, self.subscriber)
        logger.debug("Subscriber %s detached from channel '%s'", self.subscriber, self.channel)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> str:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _wait_tick(self) -> bool:
        """Sleep one poll interval; True if the subscription was stopped meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), self._poll_seconds)
        except TimeoutError:
            return False
        return True

    async def _poll_loop(self) -> None:
        while not await self._wait_tick():
            try:
                batch = await self._log.fetch(self.channel, self._last_id, self._batch_size)
            except Exception:  # noqa: BLE001
                logger.warning("Polling channel '%s' failed, retrying next tick", self.channel, exc_info=True)
                continue

            for message_id, payload in batch:
                await self._queue.put(payload)
                self._last_id = message_id
                try:
                    await self._log.advance(self.channel, self.subscriber, message_id)
                except Exception:  # noqa: BLE001
                    logger.warning(
                        "Persisting cursor %d for %s failed", message_id, self.subscriber, exc_info=True
                    )

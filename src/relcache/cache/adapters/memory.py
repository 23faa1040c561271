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
"""In-memory cache client for development, tests and single-process use."""

from __future__ import annotations

import asyncio
import contextlib
import copy
import fnmatch
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from relcache.cache.ports.outbound import CacheClient, TransactionFn
from relcache.cache.pubsub import Subscription
from relcache.cache.types import (
    NEVER_EXPIRES,
    decode_value,
    expire_time,
    parse_counter,
    to_bytes,
    utcnow,
    validate_scan,
)
from relcache.config.properties.cache import SubscribeProperties
from relcache.kernel.exceptions import CacheNotFoundException


@dataclass
class _MemoryState:
    kv: dict[str, tuple[bytes, datetime]] = field(default_factory=dict)
    maps: dict[str, dict[str, str]] = field(default_factory=dict)
    messages: list[tuple[int, str, str]] = field(default_factory=list)
    cursors: dict[tuple[str, str], int] = field(default_factory=dict)
    next_message_id: int = 1
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def snapshot(self) -> tuple[Any, ...]:
        return (dict(self.kv), copy.deepcopy(self.maps), list(self.messages), self.next_message_id)

    def restore(self, snapshot: tuple[Any, ...]) -> None:
        self.kv, self.maps, self.messages, self.next_message_id = snapshot


class _MemoryContext:
    def __init__(self, client: InMemoryCacheClient) -> None:
        self._client = client

    def get(self) -> CacheClient:
        return self._client


class _MemoryMessageLog:
    """``MessageLog`` over the shared in-memory message list.

    A log created inside a transaction already runs under the state lock,
    so attach and detach skip it. Polling always takes it, so a poller never
    sees messages a transaction may still roll back.
    """

    def __init__(self, state: _MemoryState, in_transaction: bool = False) -> None:
        self._state = state
        self._in_transaction = in_transaction

    @contextlib.asynccontextmanager
    async def _cursor_guard(self) -> AsyncIterator[dict[tuple[str, str], int]]:
        if self._in_transaction:
            yield self._state.cursors
        else:
            async with self._state.lock:
                yield self._state.cursors

    async def attach(self, channel: str, subscriber: str) -> int:
        async with self._cursor_guard() as cursors:
            cursors[(channel, subscriber)] = -1
        return -1

    async def fetch(self, channel: str, after_id: int, limit: int) -> list[tuple[int, str]]:
        async with self._state.lock:
            found = [(mid, payload) for mid, ch, payload in self._state.messages if ch == channel and mid > after_id]
        return found[:limit]

    async def advance(self, channel: str, subscriber: str, message_id: int) -> None:
        async with self._state.lock:
            if (channel, subscriber) in self._state.cursors:
                self._state.cursors[(channel, subscriber)] = message_id

    async def detach(self, channel: str, subscriber: str) -> None:
        async with self._cursor_guard() as cursors:
            cursors.pop((channel, subscriber), None)


class InMemoryCacheClient:
    """Process-local implementation of :class:`CacheClient`.

    Mutations serialize on one ``asyncio.Lock``; ``transaction`` holds the
    lock for the whole callback and restores a snapshot if it raises.
    Nothing is shared between processes.
    """

    def __init__(
        self,
        *,
        subscribe: SubscribeProperties | None = None,
        _state: _MemoryState | None = None,
        _in_transaction: bool = False,
    ) -> None:
        self._state = _state or _MemoryState()
        self._in_transaction = _in_transaction
        self._subscribe_props = subscribe or SubscribeProperties()
        self._subscriptions: list[Subscription] = []

    @contextlib.asynccontextmanager
    async def _guard(self) -> AsyncIterator[_MemoryState]:
        if self._in_transaction:
            yield self._state
        else:
            async with self._state.lock:
                yield self._state

    def _live(self, state: _MemoryState, key: str) -> tuple[bytes, datetime] | None:
        entry = state.kv.get(key)
        if entry is None:
            return None
        if entry[1] <= utcnow():
            del state.kv[key]
            return None
        return entry

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()

    async def close(self) -> None:
        if not self._in_transaction:
            await self.stop()

    async def set(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> None:
        entry = (to_bytes(value), expire_time(ttl))
        async with self._guard() as state:
            state.kv[key] = entry

    async def get_bytes(self, key: str) -> bytes:
        async with self._guard() as state:
            entry = self._live(state, key)
        if entry is None:
            raise CacheNotFoundException(context={"key": key})
        return entry[0]

    async def get_string(self, key: str) -> str:
        return decode_value(await self.get_bytes(key), key)

    async def delete(self, key: str) -> int:
        async with self._guard() as state:
            return 1 if state.kv.pop(key, None) is not None else 0

    async def count(self, *keys: str) -> int:
        async with self._guard() as state:
            candidates = set(keys) if keys else list(state.kv)
            return sum(1 for key in candidates if self._live(state, key) is not None)

    async def set_nx(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> bool:
        entry = (to_bytes(value), expire_time(ttl))
        async with self._guard() as state:
            if self._live(state, key) is not None:
                return False
            state.kv[key] = entry
            return True

    async def expire(self, key: str, ttl: timedelta | None) -> bool:
        expires = expire_time(ttl)
        async with self._guard() as state:
            entry = self._live(state, key)
            if entry is None:
                return False
            state.kv[key] = (entry[0], expires)
            return True

    async def incr_by(self, key: str, delta: int) -> int:
        async with self._guard() as state:
            entry = self._live(state, key)
            if entry is None:
                current, expires = 0, NEVER_EXPIRES
            else:
                current, expires = parse_counter(entry[0].decode(errors="replace"), key), entry[1]
            result = current + delta
            state.kv[key] = (str(result).encode(), expires)
            return result

    async def set_map_field(self, key: str, field: str, value: str) -> None:
        async with self._guard() as state:
            state.maps.setdefault(key, {})[field] = value

    async def get_map_field(self, key: str, field: str) -> str:
        async with self._guard() as state:
            value = state.maps.get(key, {}).get(field)
        if value is None:
            raise CacheNotFoundException(context={"key": key, "field": field})
        return value

    async def delete_map_field(self, key: str, field: str) -> None:
        async with self._guard() as state:
            fields = state.maps.get(key)
            if fields is not None:
                fields.pop(field, None)
                if not fields:
                    del state.maps[key]

    async def get_map(self, key: str) -> dict[str, str]:
        async with self._guard() as state:
            fields = dict(state.maps.get(key, {}))
        if not fields:
            raise CacheNotFoundException(context={"key": key})
        return fields

    async def scan_map_stream(self, key: str, cursor: int, match: str, count: int) -> tuple[list[str], int]:
        validate_scan(cursor, count)
        # Character classes are not part of the supported glob syntax.
        pattern = match.replace("[", "[[]") if match else ""
        async with self._guard() as state:
            items = [
                (f, v) for f, v in state.maps.get(key, {}).items() if not pattern or fnmatch.fnmatchcase(f, pattern)
            ]
        page = items[cursor : cursor + count]
        flat = [part for pair in page for part in pair]
        next_cursor = 0 if len(page) < count else cursor + len(page)
        return flat, next_cursor

    async def transaction(self, fn: TransactionFn[Any]) -> Any:
        if self._in_transaction:
            return await fn(_MemoryContext(self))
        async with self._state.lock:
            snapshot = self._state.snapshot()
            bound = InMemoryCacheClient(subscribe=self._subscribe_props, _state=self._state, _in_transaction=True)
            bound._subscriptions = self._subscriptions
            try:
                return await fn(_MemoryContext(bound))
            except BaseException:
                self._state.restore(snapshot)
                raise

    async def publish(self, channel: str, message: str) -> None:
        async with self._guard() as state:
            state.messages.append((state.next_message_id, channel, message))
            state.next_message_id += 1

    async def subscribe(self, channel: str) -> Subscription:
        self._subscriptions[:] = [s for s in self._subscriptions if not s.closed]
        subscription = Subscription(
            _MemoryMessageLog(self._state, self._in_transaction),
            channel,
            poll_interval=self._subscribe_props.poll_interval_delta,
            batch_size=self._subscribe_props.batch_size,
            buffer_size=self._subscribe_props.buffer_size,
        )
        await subscription.start()
        self._subscriptions.append(subscription)
        return subscription

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
"""Cache client backed by a transactional relational store."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from relcache.cache.adapters.relational import dialect
from relcache.cache.adapters.relational.models import (
    CacheBase,
    cache_kvs,
    cache_maps,
    cache_messages,
    cache_subscriptions,
)
from relcache.cache.adapters.relational.reaper import ExpiryReaper
from relcache.cache.adapters.relational.session import session_scope
from relcache.cache.ports.outbound import CacheClient, TransactionFn
from relcache.cache.pubsub import Subscription
from relcache.cache.types import (
    LIKE_ESCAPE,
    NEVER_EXPIRES,
    decode_value,
    expire_time,
    glob_to_like,
    parse_counter,
    to_bytes,
    utcnow,
    validate_scan,
)
from relcache.config.properties.cache import ReaperProperties, SubscribeProperties
from relcache.kernel.exceptions import CacheNotFoundException

logger = logging.getLogger(__name__)

_KV_UPDATE_COLUMNS = ("cache_value", "expire_time", "updated_at")


class _TransactionContext:
    """Carries the client bound to the active transaction."""

    def __init__(self, client: RelationalCacheClient) -> None:
        self._client = client

    def get(self) -> CacheClient:
        return self._client


class RelationalMessageLog:
    """``MessageLog`` over ``cache_messages`` and ``cache_message_subscribes``.

    Every call runs in its own short transaction so pollers never hold a
    caller's transaction open.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], dialect_name: str) -> None:
        self._session_factory = session_factory
        self._dialect = dialect_name

    async def attach(self, channel: str, subscriber: str) -> int:
        now = utcnow()
        stmt = dialect.upsert(
            self._dialect,
            cache_subscriptions,
            {
                "channel": channel,
                "subscriber": subscriber,
                "last_message_id": -1,
                "created_at": now,
                "updated_at": now,
            },
            ("channel", "subscriber"),
            ("last_message_id", "updated_at"),
        )
        async with session_scope(self._session_factory) as session:
            await session.execute(stmt)
        return -1

    async def fetch(self, channel: str, after_id: int, limit: int) -> list[tuple[int, str]]:
        stmt = (
            select(cache_messages.c.id, cache_messages.c.message)
            .where(cache_messages.c.channel == channel, cache_messages.c.id > after_id)
            .order_by(cache_messages.c.id.asc())
            .limit(limit)
        )
        async with session_scope(self._session_factory) as session:
            rows = (await session.execute(stmt)).all()
        return [(int(row.id), row.message) for row in rows]

    async def advance(self, channel: str, subscriber: str, message_id: int) -> None:
        stmt = (
            update(cache_subscriptions)
            .where(cache_subscriptions.c.channel == channel, cache_subscriptions.c.subscriber == subscriber)
            .values(last_message_id=message_id, updated_at=utcnow())
        )
        async with session_scope(self._session_factory) as session:
            await session.execute(stmt)

    async def detach(self, channel: str, subscriber: str) -> None:
        stmt = delete(cache_subscriptions).where(
            cache_subscriptions.c.channel == channel, cache_subscriptions.c.subscriber == subscriber
        )
        async with session_scope(self._session_factory) as session:
            await session.execute(stmt)


class RelationalCacheClient:
    """Redis-style cache semantics on top of SQL tables.

    Every operation is race-safe without an in-process lock: writes use
    unique-key upserts and conditional inserts, counters use a locked
    read-modify-write inside one transaction, and expired rows are filtered
    on read and purged by the :class:`ExpiryReaper`.

    Usage::

        engine = dialect.create_engine("sqlite+aiosqlite:///./cache.db")
        client = RelationalCacheClient(engine, owns_engine=True)
        await client.start()
        await client.set("greeting", "hello", timedelta(minutes=5))
        await client.get_string("greeting")
        await client.close()
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        reaper: ReaperProperties | None = None,
        subscribe: SubscribeProperties | None = None,
        ddl_auto: str = "create",
        owns_engine: bool = False,
    ) -> None:
        self._engine = engine
        self._dialect = engine.dialect.name
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._session: AsyncSession | None = None
        self._reaper_props = reaper or ReaperProperties()
        self._subscribe_props = subscribe or SubscribeProperties()
        self._ddl_auto = ddl_auto
        self._owns_engine = owns_engine
        self._reaper = ExpiryReaper(
            self._session_factory,
            initial_delay=self._reaper_props.initial_delay_delta,
            interval=self._reaper_props.interval_delta,
        )
        self._subscriptions: list[Subscription] = []

    @property
    def reaper(self) -> ExpiryReaper:
        return self._reaper

    @property
    def in_transaction(self) -> bool:
        return self._session is not None

    def _bind(self, session: AsyncSession) -> RelationalCacheClient:
        bound = object.__new__(RelationalCacheClient)
        bound.__dict__.update(self.__dict__)
        bound._session = session
        return bound

    @asynccontextmanager
    async def _scope(self) -> AsyncIterator[AsyncSession]:
        async with session_scope(self._session_factory, self._session) as session:
            yield session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Create missing tables (``ddl_auto=create``) and start the reaper."""
        if self._ddl_auto == "create":
            logger.info("Initializing cache schema (ddl-auto=%s)", self._ddl_auto)
            async with self._engine.begin() as conn:
                await conn.run_sync(CacheBase.metadata.create_all)
            logger.info("Cache schema initialized (%d tables)", len(CacheBase.metadata.tables))
        if self._reaper_props.enabled:
            await self._reaper.start()

    async def stop(self) -> None:
        await self._reaper.stop()
        for subscription in self._subscriptions:
            await subscription.close()
        self._subscriptions.clear()
        if self._owns_engine:
            await self._engine.dispose()

    async def close(self) -> None:
        """Release the backend. A no-op on a transaction-bound handle."""
        if self._session is not None:
            return
        await self.stop()

    # ------------------------------------------------------------------
    # Scalar entries
    # ------------------------------------------------------------------

    def _kv_values(self, key: str, value: bytes, expires: Any) -> dict[str, Any]:
        now = utcnow()
        return {
            "cache_key": key,
            "cache_value": value,
            "expire_time": expires,
            "created_at": now,
            "updated_at": now,
        }

    async def set(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> None:
        """Upsert *key*; a ``None`` or zero *ttl* never expires."""
        values = self._kv_values(key, to_bytes(value), expire_time(ttl))
        stmt = dialect.upsert(self._dialect, cache_kvs, values, ("cache_key",), _KV_UPDATE_COLUMNS)
        async with self._scope() as session:
            await session.execute(stmt)

    async def get_bytes(self, key: str) -> bytes:
        stmt = select(cache_kvs.c.cache_value).where(
            cache_kvs.c.cache_key == key, cache_kvs.c.expire_time > utcnow()
        )
        async with self._scope() as session:
            value = await session.scalar(stmt)
        if value is None:
            raise CacheNotFoundException(context={"key": key})
        return bytes(value)

    async def get_string(self, key: str) -> str:
        return decode_value(await self.get_bytes(key), key)

    async def delete(self, key: str) -> int:
        async with self._scope() as session:
            result = await session.execute(delete(cache_kvs).where(cache_kvs.c.cache_key == key))
        return int(result.rowcount or 0)

    async def count(self, *keys: str) -> int:
        """Number of live entries among *keys*, or of all live entries."""
        stmt = select(func.count()).select_from(cache_kvs).where(cache_kvs.c.expire_time > utcnow())
        if keys:
            stmt = stmt.where(cache_kvs.c.cache_key.in_(keys))
        async with self._scope() as session:
            total = await session.scalar(stmt)
        return int(total or 0)

    async def set_nx(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> bool:
        """Insert *key* only if no live entry exists. True iff this call created it."""
        now = utcnow()
        values = self._kv_values(key, to_bytes(value), expire_time(ttl, now))
        stmt = dialect.insert_ignore(self._dialect, cache_kvs, values, ("cache_key",))
        async with self._scope() as session:
            await session.execute(
                delete(cache_kvs).where(cache_kvs.c.cache_key == key, cache_kvs.c.expire_time <= now)
            )
            result = await session.execute(stmt)
        return result.rowcount == 1

    async def expire(self, key: str, ttl: timedelta | None) -> bool:
        """Reset the expiry of a live entry. True iff the key existed."""
        now = utcnow()
        stmt = (
            update(cache_kvs)
            .where(cache_kvs.c.cache_key == key, cache_kvs.c.expire_time > now)
            .values(expire_time=expire_time(ttl, now), updated_at=now)
        )
        async with self._scope() as session:
            result = await session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def incr_by(self, key: str, delta: int) -> int:
        """Atomically add *delta* to an integer entry, creating it at 0.

        The row is materialized with insert-ignore, then read under a row
        lock, so concurrent increments serialize. The expiry is left as is.
        """
        now = utcnow()
        seed = dialect.insert_ignore(
            self._dialect, cache_kvs, self._kv_values(key, b"0", NEVER_EXPIRES), ("cache_key",)
        )
        async with self._scope() as session:
            await session.execute(
                delete(cache_kvs).where(cache_kvs.c.cache_key == key, cache_kvs.c.expire_time <= now)
            )
            await session.execute(seed)
            raw = await session.scalar(
                select(cache_kvs.c.cache_value).where(cache_kvs.c.cache_key == key).with_for_update()
            )
            current = parse_counter(bytes(raw).decode(errors="replace"), key)
            result = current + delta
            await session.execute(
                update(cache_kvs)
                .where(cache_kvs.c.cache_key == key)
                .values(cache_value=str(result).encode(), updated_at=now)
            )
        return result

    # ------------------------------------------------------------------
    # Hash maps
    # ------------------------------------------------------------------

    async def set_map_field(self, key: str, field: str, value: str) -> None:
        now = utcnow()
        stmt = dialect.upsert(
            self._dialect,
            cache_maps,
            {"cache_key": key, "cache_field": field, "cache_value": value, "created_at": now, "updated_at": now},
            ("cache_key", "cache_field"),
            ("cache_value", "updated_at"),
        )
        async with self._scope() as session:
            await session.execute(stmt)

    async def get_map_field(self, key: str, field: str) -> str:
        stmt = select(cache_maps.c.cache_value).where(cache_maps.c.cache_key == key, cache_maps.c.cache_field == field)
        async with self._scope() as session:
            value = await session.scalar(stmt)
        if value is None:
            raise CacheNotFoundException(context={"key": key, "field": field})
        return value

    async def delete_map_field(self, key: str, field: str) -> None:
        stmt = delete(cache_maps).where(cache_maps.c.cache_key == key, cache_maps.c.cache_field == field)
        async with self._scope() as session:
            await session.execute(stmt)

    async def get_map(self, key: str) -> dict[str, str]:
        stmt = (
            select(cache_maps.c.cache_field, cache_maps.c.cache_value)
            .where(cache_maps.c.cache_key == key)
            .order_by(cache_maps.c.id)
        )
        async with self._scope() as session:
            rows = (await session.execute(stmt)).all()
        if not rows:
            raise CacheNotFoundException(context={"key": key})
        return {row.cache_field: row.cache_value for row in rows}

    async def scan_map_stream(self, key: str, cursor: int, match: str, count: int) -> tuple[list[str], int]:
        """Page through a map's fields.

        Returns ``[field, value, field, value, ...]`` and the next cursor,
        which is ``0`` once a page comes back shorter than *count*.
        """
        validate_scan(cursor, count)
        stmt = select(cache_maps.c.cache_field, cache_maps.c.cache_value).where(cache_maps.c.cache_key == key)
        if match:
            stmt = stmt.where(cache_maps.c.cache_field.like(glob_to_like(match), escape=LIKE_ESCAPE))
        stmt = stmt.order_by(cache_maps.c.id).offset(cursor).limit(count)
        async with self._scope() as session:
            rows = (await session.execute(stmt)).all()

        flat: list[str] = []
        for row in rows:
            flat.extend((row.cache_field, row.cache_value))
        next_cursor = 0 if len(rows) < count else cursor + len(rows)
        return flat, next_cursor

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def transaction(self, fn: TransactionFn[Any]) -> Any:
        """Run ``await fn(context)`` in one transaction.

        ``context.get()`` returns a client bound to the transaction; any
        exception from *fn* rolls back every change made through it. Called
        on a bound client, the inner function joins the outer transaction.
        The bound client must not be used from concurrent tasks.
        """
        if self._session is not None:
            return await fn(_TransactionContext(self))
        async with self._scope() as session:
            return await fn(_TransactionContext(self._bind(session)))

    # ------------------------------------------------------------------
    # Publish / subscribe
    # ------------------------------------------------------------------

    async def publish(self, channel: str, message: str) -> None:
        stmt = insert(cache_messages).values(channel=channel, message=message, created_at=utcnow())
        async with self._scope() as session:
            await session.execute(stmt)

    async def subscribe(self, channel: str) -> Subscription:
        """Attach a polling subscriber that starts from the oldest message."""
        self._subscriptions[:] = [s for s in self._subscriptions if not s.closed]
        subscription = Subscription(
            RelationalMessageLog(self._session_factory, self._dialect),
            channel,
            poll_interval=self._subscribe_props.poll_interval_delta,
            batch_size=self._subscribe_props.batch_size,
            buffer_size=self._subscribe_props.buffer_size,
        )
        await subscription.start()
        self._subscriptions.append(subscription)
        return subscription

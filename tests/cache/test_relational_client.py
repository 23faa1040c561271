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
"""Tests for the relational backend: schema, physical rows, reaper and store errors."""

import asyncio
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker

from relcache.cache.adapters.relational.client import RelationalCacheClient
from relcache.cache.adapters.relational.models import CacheBase, cache_kvs
from relcache.cache.adapters.relational.reaper import ExpiryReaper
from relcache.cache.types import NEVER_EXPIRES
from relcache.config.properties.cache import ReaperProperties
from relcache.kernel.exceptions import CacheNotFoundException, StoreException


async def _row_count(engine, table) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(table))).scalar_one()


class TestSchema:
    @pytest.mark.asyncio
    async def test_start_creates_tables(self, engine, relational_client):
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        assert {"cache_kvs", "cache_maps", "cache_messages", "cache_message_subscribes"} <= set(tables)

    @pytest.mark.asyncio
    async def test_ddl_auto_none_skips_schema(self, engine):
        client = RelationalCacheClient(engine, reaper=ReaperProperties(enabled=False), ddl_auto="none")
        await client.start()
        with pytest.raises(StoreException):
            await client.set("k", "v")
        await client.close()

    @pytest.mark.asyncio
    async def test_start_is_repeatable(self, relational_client):
        await relational_client.set("k", "v")
        await relational_client.start()
        assert await relational_client.get_string("k") == "v"


class TestPhysicalRows:
    @pytest.mark.asyncio
    async def test_expired_row_hidden_until_reaped(self, engine, relational_client):
        await relational_client.set("k", "v", ttl=timedelta(milliseconds=20))
        await asyncio.sleep(0.05)
        with pytest.raises(CacheNotFoundException):
            await relational_client.get_string("k")
        assert await _row_count(engine, cache_kvs) == 1

    @pytest.mark.asyncio
    async def test_no_ttl_stores_sentinel(self, engine, relational_client):
        await relational_client.set("k", "v")
        async with engine.connect() as conn:
            stored = (await conn.execute(select(cache_kvs.c.expire_time))).scalar_one()
        assert stored.replace(tzinfo=None) == NEVER_EXPIRES.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_one_row_per_key(self, engine, relational_client):
        for i in range(5):
            await relational_client.set("k", str(i))
        assert await _row_count(engine, cache_kvs) == 1


class TestStoreErrors:
    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, engine, relational_client):
        async with engine.begin() as conn:
            await conn.run_sync(CacheBase.metadata.drop_all)
        with pytest.raises(StoreException) as exc_info:
            await relational_client.get_string("k")
        assert exc_info.value.code == "CACHE_STORE"
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_bound_handle_close_is_noop(self, relational_client):
        async def work(ctx):
            await ctx.get().close()
            await ctx.get().set("k", "v")
            return ctx.get().in_transaction

        assert await relational_client.transaction(work) is True
        assert await relational_client.get_string("k") == "v"
        assert relational_client.in_transaction is False


class TestExpiryReaper:
    @pytest.mark.asyncio
    async def test_reap_once_removes_only_expired(self, engine, relational_client):
        await relational_client.set("short", "v", ttl=timedelta(milliseconds=20))
        await relational_client.set("long", "v", ttl=timedelta(minutes=5))
        await relational_client.set("forever", "v")
        await asyncio.sleep(0.05)

        assert await relational_client.reaper.reap_once() == 1
        assert await _row_count(engine, cache_kvs) == 2
        assert await relational_client.get_string("long") == "v"

    @pytest.mark.asyncio
    async def test_reap_once_with_nothing_expired(self, relational_client):
        await relational_client.set("k", "v")
        assert await relational_client.reaper.reap_once() == 0

    @pytest.mark.asyncio
    async def test_background_loop_reaps(self, engine, relational_client):
        reaper = ExpiryReaper(
            async_sessionmaker(engine),
            initial_delay=timedelta(0),
            interval=timedelta(milliseconds=20),
        )
        await relational_client.set("k", "v", ttl=timedelta(milliseconds=10))
        await reaper.start()
        try:
            for _ in range(100):
                if await _row_count(engine, cache_kvs) == 0:
                    break
                await asyncio.sleep(0.02)
            assert await _row_count(engine, cache_kvs) == 0
        finally:
            await reaper.stop()
        assert reaper.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, engine):
        reaper = ExpiryReaper(async_sessionmaker(engine))
        await reaper.start()
        task = reaper._task
        await reaper.start()
        assert reaper._task is task
        await reaper.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, engine):
        reaper = ExpiryReaper(async_sessionmaker(engine))
        await reaper.stop()
        assert reaper.running is False

    @pytest.mark.asyncio
    async def test_failed_sweep_keeps_loop_alive(self):
        factory = MagicMock(side_effect=OperationalError("DELETE", {}, Exception("database is locked")))
        reaper = ExpiryReaper(factory, initial_delay=timedelta(0), interval=timedelta(milliseconds=10))
        await reaper.start()
        await asyncio.sleep(0.1)
        assert reaper.running is True
        assert factory.call_count >= 2
        await reaper.stop()

    @pytest.mark.asyncio
    async def test_client_starts_reaper_when_enabled(self, engine):
        client = RelationalCacheClient(engine, reaper=ReaperProperties(enabled=True, initial_delay=60, interval=60))
        await client.start()
        assert client.reaper.running is True
        await client.close()
        assert client.reaper.running is False

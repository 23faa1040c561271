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
"""Tests for backend selection and init_cache bootstrap."""

import pytest

from relcache.cache import registry
from relcache.cache.adapters.memory import InMemoryCacheClient
from relcache.cache.adapters.relational.client import RelationalCacheClient
from relcache.cache.auto_configuration import CacheAutoConfiguration, init_cache
from relcache.cache.command import CommandAdapter
from relcache.config.properties.cache import CacheProperties
from relcache.core.config import Config
from relcache.kernel.exceptions import ValidationException


def _config(**cache) -> Config:
    cache.setdefault("reaper", {"enabled": False})
    return Config.with_defaults({"relcache": {"cache": cache}})


@pytest.fixture(autouse=True)
def _empty_registry(monkeypatch):
    monkeypatch.setattr(registry, "_client", None)


class TestDetectProvider:
    def test_url_selects_relational(self):
        assert CacheAutoConfiguration.detect_provider(CacheProperties(url="sqlite+aiosqlite:///x.db")) == "relational"

    def test_no_url_selects_memory(self):
        assert CacheAutoConfiguration.detect_provider(CacheProperties()) == "memory"


class TestCacheClient:
    def test_defaults_give_memory_backend(self):
        client = CacheAutoConfiguration().cache_client(Config.with_defaults())
        assert isinstance(client, InMemoryCacheClient)

    @pytest.mark.asyncio
    async def test_auto_with_url_gives_relational_backend(self, tmp_path):
        client = CacheAutoConfiguration().cache_client(_config(url=f"sqlite+aiosqlite:///{tmp_path / 'c.db'}"))
        assert isinstance(client, RelationalCacheClient)
        await client.close()

    def test_explicit_memory_wins_over_url(self):
        client = CacheAutoConfiguration().cache_client(_config(provider="memory", url="sqlite+aiosqlite:///x.db"))
        assert isinstance(client, InMemoryCacheClient)

    def test_relational_requires_url(self):
        with pytest.raises(ValidationException):
            CacheAutoConfiguration().cache_client(_config(provider="relational"))

    def test_unknown_provider(self):
        with pytest.raises(ValidationException) as exc_info:
            CacheAutoConfiguration().cache_client(_config(provider="redis"))
        assert exc_info.value.context["provider"] == "redis"

    def test_provider_from_environment(self, monkeypatch):
        monkeypatch.setenv("RELCACHE_CACHE_PROVIDER", "memory")
        client = CacheAutoConfiguration().cache_client(_config(provider="relational"))
        assert isinstance(client, InMemoryCacheClient)


class TestInitCache:
    @pytest.mark.asyncio
    async def test_relational_bootstrap(self, tmp_path):
        adapter = await init_cache(_config(url=f"sqlite+aiosqlite:///{tmp_path / 'c.db'}"))
        try:
            assert isinstance(adapter, CommandAdapter)
            assert registry.get_client() is adapter.client
            assert (await adapter.set("k", "v")).err() is None
            assert (await adapter.get("k")).result() == "v"
        finally:
            await registry.close_client()

    @pytest.mark.asyncio
    async def test_memory_bootstrap_with_defaults(self):
        adapter = await init_cache()
        try:
            assert isinstance(adapter.client, InMemoryCacheClient)
            assert (await adapter.incr("n")).result() == 1
        finally:
            await registry.close_client()

    @pytest.mark.asyncio
    async def test_custom_logging_port(self):
        class RecordingPort:
            def __init__(self):
                self.configured = None

            def configure(self, config):
                self.configured = config

            def get_logger(self, name):
                return None

            def set_level(self, name, level):
                pass

        port = RecordingPort()
        config = _config()
        await init_cache(config, logging_port=port)
        assert port.configured is config
        await registry.close_client()

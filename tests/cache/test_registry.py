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
"""Tests for the process-wide cache client registry."""

import pytest

from relcache.cache import registry
from relcache.cache.adapters.memory import InMemoryCacheClient
from relcache.kernel.exceptions import CacheNotInitializedException


@pytest.fixture(autouse=True)
def _empty_registry(monkeypatch):
    monkeypatch.setattr(registry, "_client", None)


class TestRegistry:
    def test_get_before_registration_raises(self):
        with pytest.raises(CacheNotInitializedException) as exc_info:
            registry.get_client()
        assert exc_info.value.code == "CACHE_NOT_INIT"

    @pytest.mark.asyncio
    async def test_close_before_registration_raises(self):
        with pytest.raises(CacheNotInitializedException):
            await registry.close_client()

    def test_set_then_get(self):
        client = InMemoryCacheClient()
        registry.set_client(client)
        assert registry.get_client() is client

    @pytest.mark.asyncio
    async def test_close_unregisters(self):
        client = InMemoryCacheClient()
        await client.subscribe("news")
        registry.set_client(client)

        await registry.close_client()

        with pytest.raises(CacheNotInitializedException):
            registry.get_client()

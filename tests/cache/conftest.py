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
"""Shared fixtures: a file-backed SQLite relational client and an in-memory client."""

from __future__ import annotations

import pytest

from relcache.cache.adapters.memory import InMemoryCacheClient
from relcache.cache.adapters.relational.client import RelationalCacheClient
from relcache.cache.adapters.relational.dialect import create_engine
from relcache.config.properties.cache import ReaperProperties, SubscribeProperties

FAST_SUBSCRIBE = SubscribeProperties(poll_interval=0.02, batch_size=10, buffer_size=100)
NO_REAPER = ReaperProperties(enabled=False)


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def relational_client(engine):
    client = RelationalCacheClient(engine, reaper=NO_REAPER, subscribe=FAST_SUBSCRIBE)
    await client.start()
    yield client
    await client.close()


@pytest.fixture
async def memory_client():
    client = InMemoryCacheClient(subscribe=FAST_SUBSCRIBE)
    yield client
    await client.close()


@pytest.fixture(params=["relational", "memory"])
def client(request):
    """Every contract test runs against both backends."""
    return request.getfixturevalue(f"{request.param}_client")

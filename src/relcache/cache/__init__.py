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
"""relcache cache -- contract, backends, command adapter and registry."""

from relcache.cache.adapters.memory import InMemoryCacheClient
from relcache.cache.adapters.relational import ExpiryReaper, RelationalCacheClient
from relcache.cache.auto_configuration import CacheAutoConfiguration, init_cache
from relcache.cache.command import CommandAdapter, NoopPipeline
from relcache.cache.ports.outbound import CacheClient, CacheContext
from relcache.cache.pubsub import Subscription
from relcache.cache.registry import close_client, get_client, set_client

__all__ = [
    "CacheAutoConfiguration",
    "CacheClient",
    "CacheContext",
    "CommandAdapter",
    "ExpiryReaper",
    "InMemoryCacheClient",
    "NoopPipeline",
    "RelationalCacheClient",
    "Subscription",
    "close_client",
    "get_client",
    "init_cache",
    "set_client",
]

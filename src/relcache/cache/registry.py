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
"""Process-wide registration of the active cache backend."""

from __future__ import annotations

import logging

from relcache.cache.ports.outbound import CacheClient
from relcache.kernel.exceptions import CacheNotInitializedException

logger = logging.getLogger(__name__)

_client: CacheClient | None = None


def set_client(client: CacheClient) -> None:
    """Register *client* as the process's cache backend."""
    global _client
    _client = client
    logger.debug("Registered cache backend %s", type(client).__name__)


def get_client() -> CacheClient:
    """Return the registered backend; raise if none was registered."""
    if _client is None:
        raise CacheNotInitializedException()
    return _client


async def close_client() -> None:
    """Close and unregister the backend."""
    global _client
    client = get_client()
    _client = None
    await client.close()

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
"""Cache backend selection and process bootstrap."""

from __future__ import annotations

import logging

from relcache.cache.command.adapter import CommandAdapter
from relcache.cache.ports.outbound import CacheClient
from relcache.cache.registry import set_client
from relcache.config.properties.cache import CacheProperties, ReaperProperties, SubscribeProperties
from relcache.core.config import Config
from relcache.kernel.exceptions import ValidationException
from relcache.kernel.lifecycle import Lifecycle
from relcache.logging.port import LoggingPort
from relcache.logging.structlog_adapter import StructlogAdapter

logger = logging.getLogger(__name__)


class CacheAutoConfiguration:
    """Builds the cache client named by ``relcache.cache.provider``."""

    PROVIDERS = ("relational", "memory")

    @staticmethod
    def detect_provider(props: CacheProperties) -> str:
        """``relational`` when a store URL is configured, else ``memory``."""
        return "relational" if props.url else "memory"

    def cache_client(self, config: Config) -> CacheClient:
        props = config.bind(CacheProperties)
        provider = props.provider if props.provider != "auto" else self.detect_provider(props)
        subscribe = config.bind(SubscribeProperties)

        if provider == "relational":
            if not props.url:
                raise ValidationException("relcache.cache.url is required for the relational cache provider")
            from relcache.cache.adapters.relational.client import RelationalCacheClient
            from relcache.cache.adapters.relational.dialect import create_engine

            logger.info("Using relational cache backend (ddl-auto=%s)", props.ddl_auto)
            return RelationalCacheClient(
                create_engine(props.url, echo=props.echo),
                reaper=config.bind(ReaperProperties),
                subscribe=subscribe,
                ddl_auto=props.ddl_auto,
                owns_engine=True,
            )

        if provider == "memory":
            from relcache.cache.adapters.memory import InMemoryCacheClient

            logger.info("Using in-memory cache backend")
            return InMemoryCacheClient(subscribe=subscribe)

        raise ValidationException(
            f"unknown cache provider '{provider}'",
            context={"provider": provider, "supported": list(self.PROVIDERS)},
        )


async def init_cache(
    config: Config | None = None,
    *,
    logging_port: LoggingPort | None = None,
) -> CommandAdapter:
    """Configure logging, start the configured backend and register it.

    Returns a :class:`CommandAdapter` over the registered client.
    """
    config = config or Config.with_defaults()
    (logging_port or StructlogAdapter()).configure(config)

    client = CacheAutoConfiguration().cache_client(config)
    if isinstance(client, Lifecycle):
        await client.start()
    set_client(client)
    logger.info("Cache initialized successfully (%s)", type(client).__name__)
    return CommandAdapter(client)

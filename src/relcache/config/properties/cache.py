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
"""Cache subsystem configuration properties."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from relcache.core.config import config_properties


@config_properties(prefix="relcache.cache")
@dataclass
class CacheProperties:
    """Configuration for backend selection and the store (relcache.cache.*)."""

    provider: str = "auto"
    url: str = ""
    echo: bool = False
    ddl_auto: str = "create"


@config_properties(prefix="relcache.cache.reaper")
@dataclass
class ReaperProperties:
    """Expiry reaper schedule, in seconds (relcache.cache.reaper.*)."""

    enabled: bool = True
    initial_delay: float = 300.0
    interval: float = 60.0

    @property
    def initial_delay_delta(self) -> timedelta:
        return timedelta(seconds=self.initial_delay)

    @property
    def interval_delta(self) -> timedelta:
        return timedelta(seconds=self.interval)


@config_properties(prefix="relcache.cache.subscribe")
@dataclass
class SubscribeProperties:
    """Polling subscriber tuning (relcache.cache.subscribe.*)."""

    poll_interval: float = 0.1
    batch_size: int = 10
    buffer_size: int = 100

    @property
    def poll_interval_delta(self) -> timedelta:
        return timedelta(seconds=self.poll_interval)

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
"""Cache client protocol -- the capability contract every backend implements."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from relcache.cache.pubsub import Subscription

R = TypeVar("R")


@runtime_checkable
class CacheContext(Protocol):
    """Handle passed to a ``transaction`` callback.

    ``get()`` returns a client whose operations all run inside the
    surrounding transaction.
    """

    def get(self) -> CacheClient: ...


TransactionFn = Callable[[CacheContext], Awaitable[R]]


@runtime_checkable
class CacheClient(Protocol):
    """Abstract cache interface.

    All cache backends (relational, in-memory) implement this protocol;
    consumers program against it only. A ``ttl`` of ``None`` or zero means
    the entry never expires. Missing or expired entries raise
    :class:`~relcache.kernel.exceptions.CacheNotFoundException`.
    """

    async def close(self) -> None: ...

    async def set(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> None: ...

    async def get_bytes(self, key: str) -> bytes: ...

    async def get_string(self, key: str) -> str: ...

    async def delete(self, key: str) -> int: ...

    async def count(self, *keys: str) -> int: ...

    async def set_map_field(self, key: str, field: str, value: str) -> None: ...

    async def get_map_field(self, key: str, field: str) -> str: ...

    async def delete_map_field(self, key: str, field: str) -> None: ...

    async def get_map(self, key: str) -> dict[str, str]: ...

    async def scan_map_stream(
        self, key: str, cursor: int, match: str, count: int
    ) -> tuple[list[str], int]: ...

    async def set_nx(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> bool: ...

    async def expire(self, key: str, ttl: timedelta | None) -> bool: ...

    async def incr_by(self, key: str, delta: int) -> int: ...

    async def transaction(self, fn: TransactionFn[Any]) -> Any: ...

    async def publish(self, channel: str, message: str) -> None: ...

    async def subscribe(self, channel: str) -> Subscription: ...

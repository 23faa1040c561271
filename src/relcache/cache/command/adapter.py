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
"""Command-style facade over a :class:`CacheClient`.

Callers written against a Redis-like command interface use
:class:`CommandAdapter`. Commands with an in-store equivalent are
translated; list commands and pipelining have none and always fail with
:class:`CacheNotFoundException`.
"""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import timedelta
from typing import Any, TypeVar

from relcache.cache.command.results import (
    BoolResult,
    CommandResult,
    IntResult,
    MapResult,
    StatusResult,
    StringResult,
    StringSliceResult,
)
from relcache.cache.ports.outbound import CacheClient, CacheContext
from relcache.kernel.exceptions import CacheNotFoundException, RelCacheException, ValidationException

R = TypeVar("R", bound=CommandResult[Any])


def _unsupported(command: str) -> CacheNotFoundException:
    return CacheNotFoundException(f"{command} is not supported by this cache backend", context={"command": command})


def _field_pairs(values: tuple[Any, ...]) -> list[tuple[str, str]]:
    if len(values) < 2 or len(values) % 2 != 0:
        raise ValidationException(
            "hset expects an even, non-empty sequence of field/value pairs",
            context={"length": len(values)},
        )
    pairs: list[tuple[str, str]] = []
    for field, value in zip(values[::2], values[1::2], strict=True):
        if not isinstance(field, str):
            raise ValidationException("hset field names must be strings", context={"field": repr(field)})
        if isinstance(value, bytes):
            value = value.decode()
        elif not isinstance(value, str):
            value = str(value)
        pairs.append((field, value))
    return pairs


class NoopPipeline:
    """Pipeline stand-in for backends without batched execution.

    Every queued command fails immediately and :meth:`execute` raises
    :class:`CacheNotFoundException`.
    """

    def pipeline(self) -> NoopPipeline:
        return self

    async def execute(self) -> list[CommandResult[Any]]:
        raise _unsupported("pipeline")

    def set(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> StatusResult:
        return StatusResult.failed(_unsupported("pipeline"))

    def get(self, key: str) -> StringResult:
        return StringResult.failed(_unsupported("pipeline"))

    def incr(self, key: str) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def incr_by(self, key: str, value: int) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def hset(self, key: str, *values: Any) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def hgetall(self, key: str) -> MapResult:
        return MapResult.failed(_unsupported("pipeline"))

    def delete(self, *keys: str) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def exists(self, *keys: str) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def expire(self, key: str, ttl: timedelta | None) -> BoolResult:
        return BoolResult.failed(_unsupported("pipeline"))

    def lindex(self, key: str, index: int) -> StringResult:
        return StringResult.failed(_unsupported("pipeline"))

    def lpush(self, key: str, *values: Any) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def rpush(self, key: str, *values: Any) -> IntResult:
        return IntResult.failed(_unsupported("pipeline"))

    def lset(self, key: str, index: int, value: Any) -> StatusResult:
        return StatusResult.failed(_unsupported("pipeline"))

    def lpop(self, key: str) -> StringResult:
        return StringResult.failed(_unsupported("pipeline"))

    def lrange(self, key: str, start: int, stop: int) -> StringSliceResult:
        return StringSliceResult.failed(_unsupported("pipeline"))


class CommandAdapter:
    """Adapts a :class:`CacheClient` to the command interface.

    Stateless apart from the wrapped client. Multi-key ``delete`` and
    ``hset`` run inside one transaction, so they either apply fully or not
    at all.
    """

    supports_pipeline = False

    def __init__(self, client: CacheClient) -> None:
        self._client = client

    @property
    def client(self) -> CacheClient:
        return self._client

    @staticmethod
    async def _run(result_cls: type[R], call: Awaitable[Any], transform: Any = None) -> R:
        try:
            value = await call
        except RelCacheException as exc:
            return result_cls.failed(exc)
        return result_cls(transform(value) if transform is not None else value)

    def pipeline(self) -> NoopPipeline:
        return NoopPipeline()

    # -- strings ---------------------------------------------------------

    async def set(self, key: str, value: bytes | str, ttl: timedelta | None = None) -> StatusResult:
        return await self._run(StatusResult, self._client.set(key, value, ttl), lambda _: "OK")

    async def get(self, key: str) -> StringResult:
        return await self._run(StringResult, self._client.get_string(key))

    async def incr(self, key: str) -> IntResult:
        return await self.incr_by(key, 1)

    async def incr_by(self, key: str, value: int) -> IntResult:
        return await self._run(IntResult, self._client.incr_by(key, value))

    # -- hashes ----------------------------------------------------------

    async def hset(self, key: str, *values: Any) -> IntResult:
        """Set alternating ``field, value, ...`` pairs; returns the number written."""
        try:
            pairs = _field_pairs(values)
        except ValidationException as exc:
            return IntResult.failed(exc)

        async def _write(ctx: CacheContext) -> int:
            handle = ctx.get()
            for field, value in pairs:
                await handle.set_map_field(key, field, value)
            return len(pairs)

        return await self._run(IntResult, self._client.transaction(_write))

    async def hgetall(self, key: str) -> MapResult:
        return await self._run(MapResult, self._client.get_map(key))

    # -- generic ---------------------------------------------------------

    async def delete(self, *keys: str) -> IntResult:
        """Delete all *keys* atomically; returns how many existed."""
        if not keys:
            return IntResult(0)

        async def _delete_all(ctx: CacheContext) -> int:
            handle = ctx.get()
            total = 0
            for key in keys:
                total += await handle.delete(key)
            return total

        return await self._run(IntResult, self._client.transaction(_delete_all))

    async def exists(self, *keys: str) -> IntResult:
        if not keys:
            return IntResult(0)
        return await self._run(IntResult, self._client.count(*keys))

    async def expire(self, key: str, ttl: timedelta | None) -> BoolResult:
        return await self._run(BoolResult, self._client.expire(key, ttl))

    # -- lists (unsupported) ---------------------------------------------

    async def lindex(self, key: str, index: int) -> StringResult:
        return StringResult.failed(_unsupported("lindex"))

    async def lpush(self, key: str, *values: Any) -> IntResult:
        return IntResult.failed(_unsupported("lpush"))

    async def rpush(self, key: str, *values: Any) -> IntResult:
        return IntResult.failed(_unsupported("rpush"))

    async def lset(self, key: str, index: int, value: Any) -> StatusResult:
        return StatusResult.failed(_unsupported("lset"))

    async def lpop(self, key: str) -> StringResult:
        return StringResult.failed(_unsupported("lpop"))

    async def lrange(self, key: str, start: int, stop: int) -> StringSliceResult:
        return StringSliceResult.failed(_unsupported("lrange"))

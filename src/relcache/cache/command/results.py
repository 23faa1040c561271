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
"""Command results: a value or the error that replaced it.

Commands never raise for cache failures; the failure travels inside the
result. ``result()`` re-raises it, ``err()`` returns it.
"""

from __future__ import annotations

from typing import Generic, Self, TypeVar

from relcache.kernel.exceptions import RelCacheException, ValidationException

T = TypeVar("T")


class CommandResult(Generic[T]):
    """Base result: holds either a value or a :class:`RelCacheException`."""

    __slots__ = ("_err", "_val")

    def __init__(self, val: T, err: RelCacheException | None = None) -> None:
        self._val = val
        self._err = err

    @staticmethod
    def _zero() -> object:
        return None

    @classmethod
    def failed(cls, err: RelCacheException) -> Self:
        return cls(cls._zero(), err)  # type: ignore[arg-type]

    def err(self) -> RelCacheException | None:
        return self._err

    def val(self) -> T:
        """The value, or the zero value of the result type on failure."""
        return self._val

    def result(self) -> T:
        if self._err is not None:
            raise self._err
        return self._val

    def __repr__(self) -> str:
        if self._err is not None:
            return f"{type(self).__name__}(err={self._err!r})"
        return f"{type(self).__name__}(val={self._val!r})"


class StatusResult(CommandResult[str]):
    @staticmethod
    def _zero() -> str:
        return ""


class StringResult(CommandResult[str]):
    @staticmethod
    def _zero() -> str:
        return ""

    def as_int(self) -> int:
        value = self.result()
        try:
            return int(value)
        except ValueError as exc:
            raise ValidationException("value is not an integer", context={"value": value[:64]}) from exc

    def as_bytes(self) -> bytes:
        return self.result().encode()


class IntResult(CommandResult[int]):
    @staticmethod
    def _zero() -> int:
        return 0


class BoolResult(CommandResult[bool]):
    @staticmethod
    def _zero() -> bool:
        return False


class MapResult(CommandResult[dict[str, str]]):
    @staticmethod
    def _zero() -> dict[str, str]:
        return {}


class StringSliceResult(CommandResult[list[str]]):
    @staticmethod
    def _zero() -> list[str]:
        return []

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
"""Value, expiry and pattern helpers shared by the cache backends."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from relcache.kernel.exceptions import ValidationException

# Expiry stored for entries written with no TTL.
NEVER_EXPIRES = datetime(9999, 12, 31, 23, 59, 59, tzinfo=UTC)

LIKE_ESCAPE = "\\"


def utcnow() -> datetime:
    return datetime.now(UTC)


def expire_time(ttl: timedelta | None, now: datetime | None = None) -> datetime:
    """Absolute expiry for *ttl*; ``None`` or zero maps to :data:`NEVER_EXPIRES`."""
    if ttl is None or ttl == timedelta(0):
        return NEVER_EXPIRES
    if ttl < timedelta(0):
        raise ValidationException("ttl must not be negative", context={"ttl": str(ttl)})
    return (now or utcnow()) + ttl


def to_bytes(value: bytes | str) -> bytes:
    """Encode a cache value; only ``bytes`` and ``str`` are accepted."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode()
    raise ValidationException(
        f"unsupported cache value type: {type(value).__name__}",
        context={"type": type(value).__name__},
    )


def glob_to_like(pattern: str) -> str:
    """Translate a glob pattern (``*``, ``?``) to a SQL LIKE pattern.

    Literal ``%``, ``_`` and the escape character are escaped with
    :data:`LIKE_ESCAPE`.
    """
    out: list[str] = []
    for ch in pattern:
        if ch in ("%", "_", LIKE_ESCAPE):
            out.append(LIKE_ESCAPE + ch)
        elif ch == "*":
            out.append("%")
        elif ch == "?":
            out.append("_")
        else:
            out.append(ch)
    return "".join(out)


def validate_scan(cursor: int, count: int) -> None:
    if cursor < 0:
        raise ValidationException("scan cursor must not be negative", context={"cursor": cursor})
    if count < 1:
        raise ValidationException("scan count must be at least 1", context={"count": count})


def parse_counter(raw: str, key: str) -> int:
    """Parse a stored counter value, refusing anything that is not an integer."""
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationException(
            "value is not an integer or out of range",
            context={"key": key, "value": raw[:64]},
        ) from exc


def decode_value(raw: bytes, key: str) -> str:
    """Decode a stored value as UTF-8, refusing binary payloads."""
    try:
        return raw.decode()
    except UnicodeDecodeError as exc:
        raise ValidationException("value is not valid UTF-8 text", context={"key": key}) from exc

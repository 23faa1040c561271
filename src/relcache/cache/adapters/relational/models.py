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
"""Tables backing the relational cache.

``cache_kvs`` holds scalar entries, ``cache_maps`` holds hash-map fields,
``cache_messages`` is the append-only pub/sub log and
``cache_message_subscribes`` holds one delivery cursor per live subscriber.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT ids everywhere except SQLite, where only INTEGER PRIMARY KEY autoincrements.
_Id = BigInteger().with_variant(Integer, "sqlite")


def _now() -> datetime:
    return datetime.now(UTC)


class CacheBase(DeclarativeBase):
    """Declarative base for the cache tables only."""


class CacheKV(CacheBase):
    """One scalar entry. Rows with ``expire_time <= now`` are logically absent."""

    __tablename__ = "cache_kvs"

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    cache_value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    expire_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)


class CacheMap(CacheBase):
    """One field of a hash map; the map is every row sharing ``cache_key``."""

    __tablename__ = "cache_maps"
    __table_args__ = (UniqueConstraint("cache_key", "cache_field", name="idx_cache_key_field"),)

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    cache_key: Mapped[str] = mapped_column(String(256), nullable=False)
    cache_field: Mapped[str] = mapped_column(String(256), nullable=False)
    cache_value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)


class CacheMessage(CacheBase):
    """A published message; ``id`` order is delivery order within a channel."""

    __tablename__ = "cache_messages"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(_Id, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class CacheSubscription(CacheBase):
    """Delivery cursor of one attached subscriber; -1 means from the beginning."""

    __tablename__ = "cache_message_subscribes"

    channel: Mapped[str] = mapped_column(String(512), primary_key=True)
    subscriber: Mapped[str] = mapped_column(String(128), primary_key=True)
    last_message_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=-1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)


cache_kvs: Table = CacheKV.__table__  # type: ignore[assignment]
cache_maps: Table = CacheMap.__table__  # type: ignore[assignment]
cache_messages: Table = CacheMessage.__table__  # type: ignore[assignment]
cache_subscriptions: Table = CacheSubscription.__table__  # type: ignore[assignment]

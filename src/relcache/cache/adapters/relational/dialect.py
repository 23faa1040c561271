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
"""Dialect-specific statements: upsert, insert-ignore and SQLite locking.

SQLite and PostgreSQL use ``ON CONFLICT``; the MySQL family (MySQL,
MariaDB, OceanBase in MySQL mode) uses ``ON DUPLICATE KEY UPDATE`` and
``INSERT IGNORE``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Insert, Table, event
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from relcache.kernel.exceptions import StoreException

_MYSQL_FAMILY = frozenset({"mysql", "mariadb"})

# Seconds a SQLite connection waits for the write lock before failing.
SQLITE_BUSY_TIMEOUT = 30.0


def upsert(
    dialect_name: str,
    table: Table,
    values: dict[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
) -> Insert:
    """INSERT that overwrites *update_columns* when *conflict_columns* collide."""
    if dialect_name in ("sqlite", "postgresql"):
        module = sqlite if dialect_name == "sqlite" else postgresql
        stmt = module.insert(table).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=list(conflict_columns),
            set_={col: stmt.excluded[col] for col in update_columns},
        )
    if dialect_name in _MYSQL_FAMILY:
        my_stmt = mysql.insert(table).values(**values)
        return my_stmt.on_duplicate_key_update({col: my_stmt.inserted[col] for col in update_columns})
    raise StoreException(f"unsupported dialect: {dialect_name}", context={"dialect": dialect_name})


def insert_ignore(
    dialect_name: str,
    table: Table,
    values: dict[str, Any],
    conflict_columns: Sequence[str],
) -> Insert:
    """INSERT that affects zero rows instead of failing on a key conflict."""
    if dialect_name in ("sqlite", "postgresql"):
        module = sqlite if dialect_name == "sqlite" else postgresql
        return module.insert(table).values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))
    if dialect_name in _MYSQL_FAMILY:
        return mysql.insert(table).values(**values).prefix_with("IGNORE")
    raise StoreException(f"unsupported dialect: {dialect_name}", context={"dialect": dialect_name})


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN.

    The driver's implicit BEGIN is disabled and replaced by
    ``BEGIN IMMEDIATE``, so read-modify-write transactions serialize
    instead of failing or losing updates.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine ready for the cache tables."""
    kwargs: dict[str, Any] = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
    else:
        kwargs["pool_pre_ping"] = True
    engine = create_async_engine(url, **kwargs)
    use_immediate_transactions(engine)
    return engine

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
"""Transaction scope shared by the relational client, reaper and pollers."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from relcache.kernel.exceptions import StoreException


@contextlib.asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
    session: AsyncSession | None = None,
) -> AsyncIterator[AsyncSession]:
    """Yield *session* when given, else a new session inside its own transaction.

    The owned transaction commits when the block exits cleanly and rolls back
    on any exception. Store errors surface as :class:`StoreException`.
    """
    try:
        if session is not None:
            yield session
        else:
            async with session_factory() as owned, owned.begin():
                yield owned
    except SQLAlchemyError as exc:
        raise StoreException(f"cache store error: {exc}", context={"error": type(exc).__name__}) from exc

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
"""Lifecycle protocol for cache backends.

Backends that own connections, pools or background tasks implement this
protocol. Auto-configuration calls start() after building a backend; close()
on the client calls stop().
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Lifecycle(Protocol):
    """Standard lifecycle for cache backends."""

    async def start(self) -> None:
        """Bootstrap the schema and spawn background tasks.

        If the store cannot be reached, raise -- auto-configuration does not
        register a backend that failed to start.
        """
        ...

    async def stop(self) -> None:
        """Stop background tasks and release connections.

        Best-effort cleanup; safe to call more than once.
        """
        ...

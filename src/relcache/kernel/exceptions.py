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
"""Unified exception hierarchy for relcache.

All cache errors inherit from RelCacheException, so callers can catch the
base class or one of the targeted subclasses.

Categories:
- BusinessException: validation errors and absent resources
- InfrastructureException: store failures and missing backend registration
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class RelCacheException(Exception):
    """Base exception for all relcache errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "CACHE_NOT_FOUND").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(RelCacheException):
    """Caller-side errors: bad arguments, absent keys."""


class ValidationException(BusinessException):
    """Malformed call arguments or stored data that cannot be interpreted."""

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message, code="CACHE_VALIDATION", context=context)


class ResourceNotFoundException(BusinessException):
    """Requested resource does not exist."""


class CacheNotFoundException(ResourceNotFoundException):
    """Key, map field or map is absent or expired, or the operation is unsupported.

    The same error is used for every "nothing there" case; callers tell
    them apart by the call they made.
    """

    def __init__(self, message: str = "cache not found", context: dict | None = None) -> None:
        super().__init__(message, code="CACHE_NOT_FOUND", context=context)


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(RelCacheException):
    """Infrastructure failures: database, connectivity, wiring."""


class StoreException(InfrastructureException):
    """Wraps any failure raised by the underlying relational store."""

    def __init__(self, message: str, context: dict | None = None) -> None:
        super().__init__(message, code="CACHE_STORE", context=context)


class CacheNotInitializedException(InfrastructureException):
    """No cache backend was registered before use."""

    def __init__(self, message: str = "cache not init") -> None:
        super().__init__(message, code="CACHE_NOT_INIT")

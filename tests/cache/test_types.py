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
"""Tests for expiry, value and pattern helpers."""

from datetime import UTC, datetime, timedelta

import pytest

from relcache.cache.types import (
    NEVER_EXPIRES,
    decode_value,
    expire_time,
    glob_to_like,
    parse_counter,
    to_bytes,
    validate_scan,
)
from relcache.kernel.exceptions import ValidationException


class TestExpireTime:
    def test_none_never_expires(self):
        assert expire_time(None) == NEVER_EXPIRES

    def test_zero_never_expires(self):
        assert expire_time(timedelta(0)) == NEVER_EXPIRES

    def test_positive_ttl_offsets_now(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assert expire_time(timedelta(seconds=30), now) == datetime(2026, 1, 1, 0, 0, 30, tzinfo=UTC)

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValidationException):
            expire_time(timedelta(milliseconds=-1))


class TestToBytes:
    def test_str_is_utf8_encoded(self):
        assert to_bytes("héllo") == "héllo".encode()

    def test_bytes_pass_through(self):
        assert to_bytes(b"\x00") == b"\x00"

    @pytest.mark.parametrize("value", [1, 1.5, None, ["x"]])
    def test_other_types_rejected(self, value):
        with pytest.raises(ValidationException):
            to_bytes(value)


class TestGlobToLike:
    @pytest.mark.parametrize(
        ("pattern", "expected"),
        [
            ("user:*", "user:%"),
            ("a?c", "a_c"),
            ("a_b", "a\\_b"),
            ("100%", "100\\%"),
            ("back\\slash", "back\\\\slash"),
            ("plain", "plain"),
        ],
    )
    def test_translation(self, pattern, expected):
        assert glob_to_like(pattern) == expected


class TestDecodeValue:
    def test_utf8_text(self):
        assert decode_value("héllo".encode(), "k") == "héllo"

    def test_binary_payload_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            decode_value(b"\xff\xfe", "k")
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)


class TestValidation:
    def test_valid_scan_arguments(self):
        validate_scan(0, 1)

    def test_negative_cursor(self):
        with pytest.raises(ValidationException):
            validate_scan(-1, 10)

    def test_zero_count(self):
        with pytest.raises(ValidationException):
            validate_scan(0, 0)

    def test_parse_counter(self):
        assert parse_counter("-12", "n") == -12

    def test_parse_counter_rejects_text(self):
        with pytest.raises(ValidationException) as exc_info:
            parse_counter("abc", "n")
        assert exc_info.value.context["key"] == "n"

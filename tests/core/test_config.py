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
"""Tests for Config: file loading, profiles, env overrides, placeholders and binding."""

import os
from dataclasses import dataclass
from pathlib import Path

import pytest

from relcache.config.properties import CacheProperties, LoggingProperties, ReaperProperties, SubscribeProperties
from relcache.core.config import Config, config_properties


class TestConfig:
    def test_get_simple_value(self):
        config = Config({"app": {"port": 8080}})
        assert config.get("app.port") == 8080

    def test_get_with_default(self):
        config = Config({})
        assert config.get("missing.key", "default") == "default"

    def test_load_from_yaml_file(self, tmp_path: Path):
        config_file = tmp_path / "relcache.yaml"
        config_file.write_text("relcache:\n  cache:\n    url: sqlite+aiosqlite:///app.db\n")
        config = Config.from_file(config_file)
        assert config.get("relcache.cache.url") == "sqlite+aiosqlite:///app.db"
        assert config.get("relcache.cache.provider") == "auto"
        assert str(config_file) in config.loaded_sources

    def test_load_from_toml_file(self, tmp_path: Path):
        config_file = tmp_path / "relcache.toml"
        config_file.write_text('[relcache.cache]\nprovider = "memory"\n')
        config = Config.from_file(config_file, load_defaults=False)
        assert config.get("relcache.cache.provider") == "memory"
        assert config.get("relcache.cache.url") is None

    def test_missing_file_keeps_defaults(self, tmp_path: Path):
        config = Config.from_file(tmp_path / "absent.yaml")
        assert config.get("relcache.cache.ddl-auto") == "create"

    def test_env_var_override(self):
        os.environ["RELCACHE_CACHE_URL"] = "sqlite+aiosqlite:///env.db"
        try:
            config = Config({"relcache": {"cache": {"url": "sqlite+aiosqlite:///file.db"}}})
            assert config.get("relcache.cache.url") == "sqlite+aiosqlite:///env.db"
        finally:
            del os.environ["RELCACHE_CACHE_URL"]

    def test_placeholder_with_default(self):
        config = Config({"relcache": {"cache": {"url": "${RELCACHE_TEST_UNSET_URL:sqlite+aiosqlite:///x.db}"}}})
        assert config.get("relcache.cache.url") == "sqlite+aiosqlite:///x.db"

    def test_placeholder_from_config(self):
        config = Config({"db": {"path": "/var/cache"}, "relcache": {"cache": {"url": "sqlite:///${db.path}/c.db"}}})
        assert config.get("relcache.cache.url") == "sqlite:////var/cache/c.db"

    def test_unresolvable_placeholder(self):
        config = Config({"relcache": {"cache": {"url": "${RELCACHE_TEST_NOWHERE}"}}})
        with pytest.raises(ValueError):
            config.get("relcache.cache.url")

    def test_with_defaults_merges_overrides(self):
        config = Config.with_defaults({"relcache": {"cache": {"reaper": {"interval": 5}}}})
        assert config.get("relcache.cache.reaper.interval") == 5
        assert config.get("relcache.cache.reaper.initial-delay") == 300
        assert config.loaded_sources[-1] == "overrides"


class TestProfileConfigMerging:
    def test_merge_profile_config(self, tmp_path):
        base = tmp_path / "relcache.yaml"
        base.write_text("relcache:\n  cache:\n    provider: memory\n    echo: false\n")

        profile = tmp_path / "relcache-dev.yaml"
        profile.write_text("relcache:\n  cache:\n    echo: true\n")

        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("relcache.cache.provider") == "memory"
        assert config.get("relcache.cache.echo") is True

    def test_later_profile_wins(self, tmp_path):
        base = tmp_path / "relcache.yaml"
        base.write_text("relcache:\n  cache:\n    url: base\n")
        (tmp_path / "relcache-dev.yaml").write_text("relcache:\n  cache:\n    url: dev-url\n")
        (tmp_path / "relcache-local.yaml").write_text("relcache:\n  cache:\n    url: local-url\n")

        config = Config.from_file(base, active_profiles=["dev", "local"])
        assert config.get("relcache.cache.url") == "local-url"

    def test_missing_profile_file_is_skipped(self, tmp_path):
        base = tmp_path / "relcache.yaml"
        base.write_text("app:\n  name: test\n")

        config = Config.from_file(base, active_profiles=["nonexistent"])
        assert config.get("app.name") == "test"


class TestConfigProperties:
    def test_bind_to_dataclass(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///test.db"
            pool_size: int = 5

        config = Config({"database": {"url": "postgresql://localhost/mydb", "pool_size": 20}})
        db_config = config.bind(DatabaseConfig)
        assert db_config.url == "postgresql://localhost/mydb"
        assert db_config.pool_size == 20

    def test_bind_uses_defaults(self):
        props = Config({}).bind(CacheProperties)
        assert props == CacheProperties()

    def test_bind_undecorated_class(self):
        @dataclass
        class Plain:
            value: int = 1

        with pytest.raises(ValueError):
            Config({}).bind(Plain)

    def test_packaged_defaults(self):
        config = Config.with_defaults()
        cache = config.bind(CacheProperties)
        reaper = config.bind(ReaperProperties)
        subscribe = config.bind(SubscribeProperties)

        assert cache.provider == "auto"
        assert cache.ddl_auto == "create"
        assert reaper.enabled is True
        assert reaper.initial_delay_delta.total_seconds() == 300
        assert reaper.interval_delta.total_seconds() == 60
        assert subscribe.poll_interval_delta.total_seconds() == pytest.approx(0.1)
        assert subscribe.batch_size == 10
        assert subscribe.buffer_size == 100

    def test_hyphenated_keys_bind_to_fields(self):
        config = Config({"relcache": {"cache": {"ddl-auto": "none", "subscribe": {"batch-size": 50}}}})
        assert config.bind(CacheProperties).ddl_auto == "none"
        assert config.bind(SubscribeProperties).batch_size == 50

    def test_env_override_is_coerced(self, monkeypatch):
        monkeypatch.setenv("RELCACHE_CACHE_REAPER_INTERVAL", "5")
        monkeypatch.setenv("RELCACHE_CACHE_REAPER_ENABLED", "false")
        monkeypatch.setenv("RELCACHE_CACHE_SUBSCRIBE_BATCH_SIZE", "25")
        config = Config.with_defaults()

        reaper = config.bind(ReaperProperties)
        assert reaper.interval == 5.0
        assert reaper.enabled is False
        assert config.bind(SubscribeProperties).batch_size == 25

    def test_bind_logging_levels(self):
        props = Config.with_defaults().bind(LoggingProperties)
        assert props.format == "console"
        assert props.level["root"] == "INFO"
        assert props.level["sqlalchemy.engine"] == "WARNING"

"""Tests for configuration loading."""

from __future__ import annotations

from datetime import timedelta

import pytest

from window_lock.config import WindowLockConfig, load_config, save_config
from window_lock.exceptions import ConfigError
from window_lock.lockout import LockoutPolicy
from window_lock.rules.engine import EnforcementMode


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("WINDOW_LOCK_HEADLESS", raising=False)
        config = load_config(tmp_path / "none.yaml")
        assert config.lockout.policy == LockoutPolicy.CONTINUOUS
        assert config.lockout.to_settings().cooldown == timedelta(hours=24)
        assert config.enforcement.mode == EnforcementMode.ENFORCE
        assert config.control_api.host == "127.0.0.1"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "lockout:\n"
            "  policy: calendar_day\n"
            "enforcement:\n"
            "  mode: report_only\n"
            "rules_file: /tmp/rules.yaml\n"
        )
        config = load_config(path)
        assert config.lockout.policy == LockoutPolicy.CALENDAR_DAY
        assert config.enforcement.mode == EnforcementMode.REPORT_ONLY
        assert config.rules_file == "/tmp/rules.yaml"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == WindowLockConfig()

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_TOPIC", "locks-123")
        path = tmp_path / "config.yaml"
        path.write_text("notifications:\n  ntfy_topic: ${MY_TOPIC}\n")
        assert load_config(path).notifications.ntfy_topic == "locks-123"

    def test_invalid_values_raise_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("lockout:\n  policy: weekly\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_yaml_raises_config_error(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("{{{{")
        with pytest.raises(ConfigError):
            load_config(path)


class TestHeadlessEnv:
    def test_env_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WINDOW_LOCK_HEADLESS", "1")
        monkeypatch.setenv("WINDOW_LOCK_POLICY", "calendar_day")
        monkeypatch.setenv("WINDOW_LOCK_API_PORT", "9999")
        monkeypatch.setenv("NTFY_TOPIC", "t")
        config = load_config(tmp_path / "none.yaml")
        assert config.lockout.policy == LockoutPolicy.CALENDAR_DAY
        assert config.control_api.port == 9999
        assert config.notifications.ntfy_topic == "t"

    def test_bad_env_value(self, tmp_path, monkeypatch):
        monkeypatch.setenv("WINDOW_LOCK_HEADLESS", "1")
        monkeypatch.setenv("WINDOW_LOCK_API_PORT", "not-a-port")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "none.yaml")


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        config = WindowLockConfig()
        config.lockout.cooldown_hours = 12
        path = save_config(config, tmp_path / "sub" / "config.yaml")
        assert path.exists()
        assert load_config(path).lockout.cooldown_hours == 12

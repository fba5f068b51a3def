"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError
from .lockout import LockoutPolicy, LockoutSettings
from .rules.engine import EnforcementMode

DEFAULT_CONFIG_PATH = "~/.window-lock/config.yaml"


class LockoutConfig(BaseModel):
    policy: LockoutPolicy = LockoutPolicy.CONTINUOUS
    cooldown_hours: float = Field(default=24.0, ge=0)

    def to_settings(self) -> LockoutSettings:
        return LockoutSettings(
            policy=self.policy, cooldown=timedelta(hours=self.cooldown_hours)
        )


class EnforcementConfig(BaseModel):
    mode: EnforcementMode = EnforcementMode.ENFORCE


class ToggleConfig(BaseModel):
    backend: str = "file"  # "file" | "systemd"
    state_file: str = "~/.window-lock/targets.yaml"
    systemd_user: bool = True


class NotificationsConfig(BaseModel):
    desktop_enabled: bool = True
    min_interval: float = 10.0  # Per-event desktop rate limit (seconds)
    ntfy_topic: str = ""
    ntfy_server_url: str = "https://ntfy.sh"


class ControlAPIConfig(BaseModel):
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765
    auth_token: str = ""  # Bearer token for API access (empty = no auth)


class HostConfig(BaseModel):
    store_poll_seconds: float = 5.0  # 0 = don't watch the rules file


class WindowLockConfig(BaseModel):
    lockout: LockoutConfig = Field(default_factory=LockoutConfig)
    enforcement: EnforcementConfig = Field(default_factory=EnforcementConfig)
    toggle: ToggleConfig = Field(default_factory=ToggleConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    control_api: ControlAPIConfig = Field(default_factory=ControlAPIConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    rules_file: str = "~/.window-lock/rules.yaml"


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def _config_from_env() -> WindowLockConfig:
    """Build config from environment variables (for headless deployment).

    Falls back to sane defaults when env vars are not set.
    """
    try:
        return WindowLockConfig(
            lockout=LockoutConfig(
                policy=os.environ.get("WINDOW_LOCK_POLICY", "continuous"),
                cooldown_hours=float(os.environ.get("WINDOW_LOCK_COOLDOWN_HOURS", "24")),
            ),
            enforcement=EnforcementConfig(
                mode=os.environ.get("WINDOW_LOCK_ENFORCEMENT", "enforce"),
            ),
            toggle=ToggleConfig(
                backend=os.environ.get("WINDOW_LOCK_TOGGLE_BACKEND", "file"),
                state_file=os.environ.get(
                    "WINDOW_LOCK_STATE_FILE", "~/.window-lock/targets.yaml"
                ),
            ),
            notifications=NotificationsConfig(
                desktop_enabled=os.environ.get("WINDOW_LOCK_DESKTOP", "1") == "1",
                ntfy_topic=os.environ.get("NTFY_TOPIC", ""),
                ntfy_server_url=os.environ.get("NTFY_SERVER_URL", "https://ntfy.sh"),
            ),
            control_api=ControlAPIConfig(
                host=os.environ.get("WINDOW_LOCK_API_HOST", "127.0.0.1"),
                port=int(os.environ.get("WINDOW_LOCK_API_PORT", "8765")),
                auth_token=os.environ.get("WINDOW_LOCK_API_TOKEN", ""),
            ),
            rules_file=os.environ.get("WINDOW_LOCK_RULES_FILE", "~/.window-lock/rules.yaml"),
        )
    except (ValueError, ValidationError) as e:
        raise ConfigError(f"Invalid environment configuration: {e}") from e


def load_config(path: str | Path | None = None) -> WindowLockConfig:
    """Load config from YAML file, env vars, or defaults.

    Priority: config.yaml (with ${ENV} interpolation) > env vars > defaults.
    """
    path = Path(path or DEFAULT_CONFIG_PATH).expanduser()

    if not path.exists():
        if os.environ.get("WINDOW_LOCK_HEADLESS"):
            return _config_from_env()
        return WindowLockConfig()

    raw_text = path.read_text()
    interpolated = _interpolate_env_vars(raw_text)
    try:
        data = yaml.safe_load(interpolated)
        if data is None:
            return WindowLockConfig()
        return WindowLockConfig(**data)
    except (yaml.YAMLError, TypeError, ValidationError) as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def save_config(config: WindowLockConfig, path: str | Path | None = None) -> Path:
    """Save config to YAML file."""
    path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path

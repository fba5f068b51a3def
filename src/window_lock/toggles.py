"""Toggle backends: switch controlled targets on and off.

- ``file``: target states kept in a YAML file (any external agent can read
  it and apply the state, e.g. a browser extension policy sync).
- ``systemd``: targets are systemd units, on = active, off = stopped.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

import yaml

from .base import TargetToggle
from .exceptions import TargetNotFoundError, WindowLockError
from .models import ToggleState

logger = logging.getLogger("window-lock")


class FileToggle(TargetToggle):
    """Target on/off states persisted in a YAML file.

    Layout::

        targets:
          ublock:
            name: uBlock Origin
            enabled: true
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    def _load(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            data = yaml.safe_load(self._path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise WindowLockError(f"Cannot read target states from {self._path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("targets"), dict):
            return {}
        return {tid: dict(v or {}) for tid, v in data["targets"].items()}

    def _save(self, targets: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            yaml.dump({"targets": targets}, default_flow_style=False, sort_keys=False)
        )

    @staticmethod
    def _state(target_id: str, entry: dict) -> ToggleState:
        return ToggleState(
            target_id=target_id,
            name=str(entry.get("name", "")),
            enabled=bool(entry.get("enabled", True)),
        )

    async def get(self, target_id: str) -> ToggleState:
        entry = self._load().get(target_id)
        if entry is None:
            raise TargetNotFoundError(target_id)
        return self._state(target_id, entry)

    async def set(self, target_id: str, enabled: bool) -> ToggleState:
        targets = self._load()
        entry = targets.get(target_id)
        if entry is None:
            raise TargetNotFoundError(target_id)
        entry["enabled"] = enabled
        self._save(targets)
        logger.info(f"Target {target_id} {'enabled' if enabled else 'disabled'}")
        return self._state(target_id, entry)

    async def add(self, target_id: str, name: str = "", enabled: bool = True) -> ToggleState:
        """Register a target so it can be locked."""
        targets = self._load()
        targets[target_id] = {"name": name, "enabled": enabled}
        self._save(targets)
        return self._state(target_id, targets[target_id])

    async def list_targets(self) -> list[ToggleState]:
        return [self._state(tid, e) for tid, e in self._load().items()]


class SystemdToggle(TargetToggle):
    """Targets are systemd units: on = started, off = stopped."""

    def __init__(self, user: bool = True, systemctl_bin: str = "") -> None:
        self._user = user
        self._bin = systemctl_bin or shutil.which("systemctl") or "systemctl"

    async def _run(self, *args: str) -> tuple[int, str]:
        cmd = [self._bin]
        if self._user:
            cmd.append("--user")
        cmd.extend(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=15.0)
        except asyncio.TimeoutError as e:
            raise WindowLockError(f"systemctl {' '.join(args)} timed out") from e
        except FileNotFoundError as e:
            raise WindowLockError(f"systemctl not found at '{self._bin}'") from e
        out = (stdout or stderr).decode().strip()
        return proc.returncode, out

    async def _check_exists(self, unit: str) -> None:
        _, load_state = await self._run("show", "-p", "LoadState", "--value", unit)
        if load_state in ("", "not-found"):
            raise TargetNotFoundError(unit)

    async def get(self, target_id: str) -> ToggleState:
        await self._check_exists(target_id)
        _, active = await self._run("is-active", target_id)
        return ToggleState(target_id=target_id, name=target_id, enabled=active == "active")

    async def set(self, target_id: str, enabled: bool) -> ToggleState:
        await self._check_exists(target_id)
        verb = "start" if enabled else "stop"
        rc, out = await self._run(verb, target_id)
        if rc != 0:
            raise WindowLockError(f"systemctl {verb} {target_id} failed: {out[:200]}")
        logger.info(f"Unit {target_id} {'started' if enabled else 'stopped'}")
        return ToggleState(target_id=target_id, name=target_id, enabled=enabled)

"""YAML persistence for lock rules."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..base import RuleStore
from ..exceptions import StoreUnavailableError
from ..models import Rule

logger = logging.getLogger("window-lock")


class YamlRulesStore(RuleStore):
    """Load and save lock rules to a YAML file.

    The file may be shared with other machines (e.g. a synced folder), so
    it is re-read on every call and replaced atomically on write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Rule]:
        if not self._path.exists():
            return {}
        try:
            data = yaml.safe_load(self._path.read_text())
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailableError(f"Cannot read rules from {self._path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict) or "rules" not in data:
            raise StoreUnavailableError(f"Malformed rules file {self._path}")
        raw = data["rules"] or {}
        if not isinstance(raw, dict):
            raise StoreUnavailableError(f"Malformed rules file {self._path}")
        try:
            return {
                tid: Rule(**{**(record or {}), "target_id": tid})
                for tid, record in raw.items()
            }
        except (TypeError, ValidationError) as e:
            raise StoreUnavailableError(f"Invalid rule in {self._path}: {e}") from e

    async def read(self, target_id: str) -> Rule | None:
        return self._load().get(target_id)

    async def read_all(self) -> dict[str, Rule]:
        return self._load()

    async def write_all(self, rules: dict[str, Rule]) -> None:
        data = {
            "rules": {
                tid: r.model_dump(mode="json", exclude={"target_id"})
                for tid, r in rules.items()
            }
        }
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
            tmp.replace(self._path)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write rules to {self._path}: {e}") from e
        logger.debug(f"Saved {len(rules)} rule(s) to {self._path}")

    async def fingerprint(self) -> str | None:
        try:
            st = self._path.stat()
        except FileNotFoundError:
            return ""
        except OSError:
            return None
        return f"{st.st_mtime_ns}:{st.st_size}"

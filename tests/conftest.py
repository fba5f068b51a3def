"""In-memory collaborators shared by the engine, scheduler and host tests."""

from __future__ import annotations

import pytest

from window_lock.base import Notifier, RuleStore, TargetToggle, TimerService
from window_lock.exceptions import StoreUnavailableError, TargetNotFoundError
from window_lock.lockout import LockoutSettings
from window_lock.models import NotificationEvent, Rule, ToggleState
from window_lock.rules.engine import EnforcementMode, LockEngine


class MemoryStore(RuleStore):
    def __init__(self, rules: dict[str, Rule] | None = None) -> None:
        self.rules: dict[str, Rule] = dict(rules or {})
        self.writes = 0
        self.fail = False
        self.version = 0

    async def read(self, target_id: str) -> Rule | None:
        if self.fail:
            raise StoreUnavailableError("store offline")
        return self.rules.get(target_id)

    async def read_all(self) -> dict[str, Rule]:
        if self.fail:
            raise StoreUnavailableError("store offline")
        return dict(self.rules)

    async def write_all(self, rules: dict[str, Rule]) -> None:
        if self.fail:
            raise StoreUnavailableError("store offline")
        self.rules = dict(rules)
        self.writes += 1
        self.version += 1

    async def fingerprint(self) -> str | None:
        return str(self.version)


class FakeTimer(TimerService):
    def __init__(self) -> None:
        self.alarms: dict[str, tuple[int, int | None]] = {}
        self.created: list[str] = []

    async def create(self, name: str, when_ms: int, period_ms: int | None = None) -> None:
        self.alarms[name] = (when_ms, period_ms)
        self.created.append(name)

    async def cancel(self, name: str) -> bool:
        return self.alarms.pop(name, None) is not None

    async def cancel_all(self) -> int:
        count = len(self.alarms)
        self.alarms.clear()
        return count


class FakeToggle(TargetToggle):
    def __init__(self, states: dict[str, bool] | None = None) -> None:
        self.states = dict(states or {})
        self.set_calls: list[tuple[str, bool]] = []

    async def get(self, target_id: str) -> ToggleState:
        if target_id not in self.states:
            raise TargetNotFoundError(target_id)
        return ToggleState(
            target_id=target_id, name=f"Ext {target_id}", enabled=self.states[target_id]
        )

    async def set(self, target_id: str, enabled: bool) -> ToggleState:
        if target_id not in self.states:
            raise TargetNotFoundError(target_id)
        self.set_calls.append((target_id, enabled))
        self.states[target_id] = enabled
        return ToggleState(target_id=target_id, name=f"Ext {target_id}", enabled=enabled)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    async def emit(self, event: NotificationEvent) -> None:
        self.events.append(event)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def toggle() -> FakeToggle:
    return FakeToggle({"ext1": True, "ext2": False})


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(store, timer, toggle, notifier) -> LockEngine:
    return LockEngine(
        store=store,
        timer=timer,
        toggle=toggle,
        notifier=notifier,
        lockout=LockoutSettings(),
        enforcement=EnforcementMode.ENFORCE,
    )

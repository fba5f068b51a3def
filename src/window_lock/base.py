"""Abstract interfaces for the collaborators the lock engine drives.

The engine only talks to these: a durable rule store, a timer service that
fires named wake-ups at absolute times, the toggle primitive that switches a
target on or off, and a notification sink. Concrete backends live in
``rules.store``, ``timers``, ``toggles`` and ``notifications``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import NotificationEvent, Rule, ToggleState


class RuleStore(ABC):
    """Durable mapping of target id -> Rule. Record-level writes are atomic."""

    @abstractmethod
    async def read(self, target_id: str) -> Rule | None: ...

    @abstractmethod
    async def read_all(self) -> dict[str, Rule]: ...

    @abstractmethod
    async def write_all(self, rules: dict[str, Rule]) -> None: ...

    async def fingerprint(self) -> str | None:
        """Cheap change marker for out-of-band edits; None if unsupported."""
        return None


class TimerService(ABC):
    """Named wake-ups at absolute epoch-millisecond times."""

    @abstractmethod
    async def create(
        self, name: str, when_ms: int, period_ms: int | None = None
    ) -> None:
        """Register ``name``, replacing any existing wake-up of that name."""

    @abstractmethod
    async def cancel(self, name: str) -> bool: ...

    @abstractmethod
    async def cancel_all(self) -> int: ...


class TargetToggle(ABC):
    """On/off primitive for controlled targets.

    Implementations raise ``TargetNotFoundError`` for unknown targets.
    """

    @abstractmethod
    async def get(self, target_id: str) -> ToggleState: ...

    @abstractmethod
    async def set(self, target_id: str, enabled: bool) -> ToggleState: ...


class Notifier(ABC):
    """Fire-and-forget user notifications. Must not raise on delivery failure."""

    @abstractmethod
    async def emit(self, event: NotificationEvent) -> None: ...

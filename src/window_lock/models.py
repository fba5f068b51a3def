"""Pydantic models for lock rules, triggers, toggle state and notifications."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .window import normalize_hhmm

TRIGGER_PREFIX = "window-lock"


class Rule(BaseModel):
    target_id: str
    window_start: str  # "HH:MM", inclusive
    window_end: str  # "HH:MM", exclusive
    enabled: bool = True
    last_changed: datetime | None = None
    notify_on_window_open: bool = True

    @field_validator("window_start", "window_end")
    @classmethod
    def _normalize_time(cls, v: str) -> str:
        # InvalidTimeFormatError is a ValueError, so pydantic reports it
        return normalize_hhmm(v)


class TriggerPhase(str, Enum):
    WINDOW_OPEN = "window_start"
    WINDOW_CLOSE = "window_end"


class Trigger(BaseModel):
    """A scheduled wake-up: which target, and whether its window opens or closes.

    The timer subsystem only understands string names, so a Trigger is
    rendered with :attr:`name` when registered and recovered with
    :meth:`from_name` when it fires.
    """

    model_config = ConfigDict(frozen=True)

    target_id: str
    phase: TriggerPhase

    @property
    def name(self) -> str:
        return f"{TRIGGER_PREFIX}:{self.phase.value}:{self.target_id}"

    @classmethod
    def from_name(cls, name: str) -> Trigger | None:
        """Parse a timer name; None if it is not one of ours."""
        parts = name.split(":", 2)
        if len(parts) != 3 or parts[0] != TRIGGER_PREFIX or not parts[2]:
            return None
        try:
            phase = TriggerPhase(parts[1])
        except ValueError:
            return None
        return cls(target_id=parts[2], phase=phase)


class ToggleState(BaseModel):
    target_id: str
    name: str = ""  # Human label; empty = use target_id
    enabled: bool

    @property
    def label(self) -> str:
        return self.name or self.target_id


class NotificationEvent(BaseModel):
    id: str
    title: str
    message: str
    priority: int = 1  # 0 = low, 1 = normal, 2 = high
    target_id: str = ""
    created_at: datetime = Field(default_factory=datetime.now)

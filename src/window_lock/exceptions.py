"""Custom exception hierarchy for window-lock.

All window-lock exceptions inherit from WindowLockError, allowing callers
to catch broad or specific errors:

    try:
        await engine.set_rule("ext-id", "21:00", "23:00")
    except LockoutActiveError as e:
        print(f"Try again in {e.remaining}")
    except WindowLockError as e:
        print(f"window-lock error: {e}")
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta


class WindowLockError(Exception):
    """Base exception for all window-lock errors."""


class InvalidTimeFormatError(WindowLockError, ValueError):
    """Raised when a time is not HH:MM or a window starts where it ends."""


class LockoutActiveError(WindowLockError):
    """Raised when a rule is edited before its cooldown has elapsed."""

    def __init__(self, remaining: timedelta, message: str | None = None) -> None:
        self.remaining = max(remaining, timedelta(0))
        if message is None:
            hours = math.ceil(self.remaining.total_seconds() / 3600)
            message = f"Cannot change time window. Please wait {hours} more hours."
        super().__init__(message)


class TargetNotFoundError(WindowLockError):
    """Raised by a toggle backend when the target does not exist."""

    def __init__(self, target_id: str) -> None:
        self.target_id = target_id
        super().__init__(f"Target '{target_id}' not found")


class TargetLockedError(WindowLockError):
    """Raised when a user tries to switch off a target outside its window."""

    def __init__(self, target_id: str, unlocks_at: datetime | None = None) -> None:
        self.target_id = target_id
        self.unlocks_at = unlocks_at
        msg = f"Target '{target_id}' is locked"
        if unlocks_at is not None:
            msg += f" until {unlocks_at:%Y-%m-%d %H:%M}"
        super().__init__(msg)


class StoreUnavailableError(WindowLockError):
    """Raised when persisted rules cannot be read or written."""


class ConfigError(WindowLockError):
    """Raised when configuration is invalid or missing."""

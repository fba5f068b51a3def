"""Edit lockout: how often a rule may be reconfigured.

Two policies:

- ``continuous``: an edit is allowed once ``cooldown`` has elapsed since
  the last change (24 real hours by default).
- ``calendar_day``: an edit is allowed once the local calendar date differs
  from the date of the last change.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from enum import Enum

from pydantic import BaseModel

from .models import Rule


class LockoutPolicy(str, Enum):
    CONTINUOUS = "continuous"
    CALENDAR_DAY = "calendar_day"


class LockoutSettings(BaseModel):
    policy: LockoutPolicy = LockoutPolicy.CONTINUOUS
    cooldown: timedelta = timedelta(hours=24)


def can_edit(rule: Rule, now: datetime, settings: LockoutSettings) -> bool:
    if rule.last_changed is None:
        return True
    if settings.policy == LockoutPolicy.CALENDAR_DAY:
        return now.date() != rule.last_changed.date()
    return now - rule.last_changed >= settings.cooldown


def edit_allowed_at(rule: Rule, settings: LockoutSettings) -> datetime | None:
    """When the next edit becomes possible; None if there was no edit yet."""
    if rule.last_changed is None:
        return None
    if settings.policy == LockoutPolicy.CALENDAR_DAY:
        next_day = rule.last_changed.date() + timedelta(days=1)
        return datetime.combine(next_day, time(0, 0), tzinfo=rule.last_changed.tzinfo)
    return rule.last_changed + settings.cooldown


def time_until_edit_allowed(
    rule: Rule, now: datetime, settings: LockoutSettings
) -> timedelta:
    """Remaining wait before ``rule`` may be edited; never negative."""
    if can_edit(rule, now, settings):
        return timedelta(0)
    allowed_at = edit_allowed_at(rule, settings)
    if allowed_at is None:
        return timedelta(0)
    return max(allowed_at - now, timedelta(0))

"""Derives daily window-open/window-close wake-ups from rules.

Each enabled rule owns exactly two named timers, both repeating every 24h.
Scheduling always starts from "the next occurrence" relative to ``now``, so
re-running it with the same inputs yields the same fire times.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from .base import TimerService
from .models import Rule, Trigger, TriggerPhase
from .window import next_occurrence

logger = logging.getLogger("window-lock")

DAY_MS = int(timedelta(days=1).total_seconds() * 1000)


def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class TriggerScheduler:
    """Registers and cancels the per-rule wake-ups on a TimerService."""

    def __init__(self, timer: TimerService) -> None:
        self._timer = timer

    @staticmethod
    def next_fire_times(rule: Rule, now: datetime) -> tuple[datetime, datetime]:
        return (
            next_occurrence(now, rule.window_start),
            next_occurrence(now, rule.window_end),
        )

    async def schedule_rule(
        self, rule: Rule, now: datetime
    ) -> tuple[datetime, datetime] | None:
        """(Re)register both wake-ups for ``rule``; returns (open_at, close_at).

        A disabled rule gets its wake-ups cancelled instead and returns None.
        """
        if not rule.enabled:
            await self.cancel_rule(rule.target_id)
            return None

        open_at, close_at = self.next_fire_times(rule, now)
        open_trigger = Trigger(target_id=rule.target_id, phase=TriggerPhase.WINDOW_OPEN)
        close_trigger = Trigger(target_id=rule.target_id, phase=TriggerPhase.WINDOW_CLOSE)
        await self._timer.create(open_trigger.name, _to_ms(open_at), DAY_MS)
        await self._timer.create(close_trigger.name, _to_ms(close_at), DAY_MS)
        logger.info(
            f"Scheduled {rule.target_id}: window opens {open_at:%Y-%m-%d %H:%M}, "
            f"closes {close_at:%Y-%m-%d %H:%M}"
        )
        return open_at, close_at

    async def cancel_rule(self, target_id: str) -> None:
        for phase in TriggerPhase:
            await self._timer.cancel(Trigger(target_id=target_id, phase=phase).name)

    async def reinitialize_all(self, rules: dict[str, Rule], now: datetime) -> int:
        """Drop every registered wake-up and re-derive them from ``rules``.

        Returns the number of rules that were scheduled.
        """
        await self._timer.cancel_all()
        scheduled = 0
        for rule in rules.values():
            if await self.schedule_rule(rule, now) is not None:
                scheduled += 1
        logger.info(
            f"Scheduler initialized: {scheduled} of {len(rules)} rule(s) active"
        )
        return scheduled

"""Lock engine: live lock state, rule edits, and trigger handling.

The engine keeps no copy of the rules. Every operation re-reads the store,
so a process restart followed by :meth:`LockEngine.initialize` restores the
exact same behaviour.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from ..base import Notifier, RuleStore, TargetToggle, TimerService
from ..exceptions import InvalidTimeFormatError, LockoutActiveError, TargetLockedError
from ..lockout import LockoutPolicy, LockoutSettings, can_edit, time_until_edit_allowed
from ..models import NotificationEvent, Rule, ToggleState, Trigger, TriggerPhase
from ..scheduler import TriggerScheduler
from ..window import format_duration, is_within_window, next_occurrence, normalize_hhmm

logger = logging.getLogger("window-lock")


class EnforcementMode(str, Enum):
    ENFORCE = "enforce"  # Turn the target back on when the window closes
    REPORT_ONLY = "report_only"  # Only log; switching off is refused up front


class LockEngine:
    """Evaluates lock state and reacts to window triggers for every target."""

    def __init__(
        self,
        store: RuleStore,
        timer: TimerService,
        toggle: TargetToggle,
        notifier: Notifier,
        lockout: LockoutSettings | None = None,
        enforcement: EnforcementMode = EnforcementMode.ENFORCE,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._toggle = toggle
        self._notifier = notifier
        self._scheduler = TriggerScheduler(timer)
        self._lockout = lockout or LockoutSettings()
        self._enforcement = enforcement
        self._clock = clock

    # ── Queries ────────────────────────────────────────────

    async def get_rule(self, target_id: str) -> Rule | None:
        return await self._store.read(target_id)

    async def get_all_rules(self) -> dict[str, Rule]:
        return await self._store.read_all()

    async def is_locked(self, target_id: str, now: datetime | None = None) -> bool:
        rule = await self._store.read(target_id)
        if rule is None or not rule.enabled:
            return False
        now = now or self._clock()
        return not is_within_window(now, rule.window_start, rule.window_end)

    async def time_until_edit_allowed(
        self, target_id: str, now: datetime | None = None
    ) -> timedelta:
        rule = await self._store.read(target_id)
        if rule is None:
            return timedelta(0)
        return time_until_edit_allowed(rule, now or self._clock(), self._lockout)

    # ── Mutations ──────────────────────────────────────────

    async def set_rule(
        self,
        target_id: str,
        window_start: str,
        window_end: str,
        notify: bool = True,
        now: datetime | None = None,
    ) -> Rule:
        """Create or update the rule for ``target_id``.

        Raises InvalidTimeFormatError or LockoutActiveError before anything
        is written.
        """
        now = now or self._clock()
        start = normalize_hhmm(window_start)
        end = normalize_hhmm(window_end)
        if start == end:
            raise InvalidTimeFormatError("Start and end times cannot be the same")

        rules = await self._store.read_all()
        existing = rules.get(target_id)
        if existing is not None and not can_edit(existing, now, self._lockout):
            remaining = time_until_edit_allowed(existing, now, self._lockout)
            if self._lockout.policy == LockoutPolicy.CALENDAR_DAY:
                raise LockoutActiveError(
                    remaining,
                    "Time rule can only be changed once per day. Try again tomorrow.",
                )
            raise LockoutActiveError(remaining)

        state = await self._toggle.get(target_id)
        if not state.enabled:
            logger.info(f"Turning {target_id} on before locking it")
            await self._toggle.set(target_id, True)

        last_changed = now
        if existing is not None and existing.last_changed is not None:
            last_changed = max(now, existing.last_changed)
        rule = Rule(
            target_id=target_id,
            window_start=start,
            window_end=end,
            enabled=True,
            last_changed=last_changed,
            notify_on_window_open=notify,
        )
        rules[target_id] = rule
        await self._store.write_all(rules)
        await self._scheduler.schedule_rule(rule, now)
        logger.info(f"Lock set for {target_id}: window {start}-{end}")
        return rule

    async def remove_rule(self, target_id: str) -> bool:
        """Delete the rule and its wake-ups. Returns False if there was none."""
        rules = await self._store.read_all()
        existed = rules.pop(target_id, None) is not None
        if existed:
            await self._store.write_all(rules)
            logger.info(f"Lock removed for {target_id}")
        await self._scheduler.cancel_rule(target_id)
        return existed

    async def set_target_enabled(
        self, target_id: str, enabled: bool, now: datetime | None = None
    ) -> ToggleState:
        """User-initiated toggle. Switching a locked target off is refused."""
        now = now or self._clock()
        if not enabled:
            rule = await self._store.read(target_id)
            if (
                rule is not None
                and rule.enabled
                and not is_within_window(now, rule.window_start, rule.window_end)
            ):
                raise TargetLockedError(
                    target_id, next_occurrence(now, rule.window_start)
                )
        return await self._toggle.set(target_id, enabled)

    # ── Host events ────────────────────────────────────────

    async def initialize(self, now: datetime | None = None) -> int:
        """Re-derive every wake-up from the stored rules.

        Call on startup, on install/update, and whenever the rules changed
        outside this engine.
        """
        rules = await self._store.read_all()
        return await self._scheduler.reinitialize_all(rules, now or self._clock())

    async def on_trigger_fired(
        self, trigger_name: str, now: datetime | None = None
    ) -> None:
        trigger = Trigger.from_name(trigger_name)
        if trigger is None:
            logger.debug(f"Ignoring unknown trigger {trigger_name!r}")
            return
        now = now or self._clock()

        rule = await self._store.read(trigger.target_id)
        if rule is None or not rule.enabled:
            logger.info(
                f"Trigger {trigger.phase.value} for {trigger.target_id} "
                "has no active rule, ignoring"
            )
            return

        if trigger.phase == TriggerPhase.WINDOW_OPEN:
            await self._on_window_open(rule, now)
        else:
            await self._on_window_close(rule)

    async def _on_window_open(self, rule: Rule, now: datetime) -> None:
        logger.info(f"Window opened for {rule.target_id}")
        if not rule.notify_on_window_open:
            return
        state = await self._toggle.get(rule.target_id)
        remaining = next_occurrence(now, rule.window_end) - now
        await self._notifier.emit(
            NotificationEvent(
                id=f"window_start_{rule.target_id}",
                title="Disable window open",
                message=(
                    f'You can now disable "{state.label}" until {rule.window_end} '
                    f"({format_duration(remaining)} left)"
                ),
                priority=2,
                target_id=rule.target_id,
            )
        )

    async def _on_window_close(self, rule: Rule) -> None:
        logger.info(f"Window closed for {rule.target_id}")
        state = await self._toggle.get(rule.target_id)
        if state.enabled:
            return
        if self._enforcement == EnforcementMode.REPORT_ONLY:
            logger.warning(
                f"{rule.target_id} is off outside its window (report-only mode)"
            )
            return
        await self._toggle.set(rule.target_id, True)
        logger.info(f"Re-enabled {rule.target_id}")
        await self._notifier.emit(
            NotificationEvent(
                id=f"window_end_{rule.target_id}",
                title="Target re-enabled",
                message=(
                    f'"{state.label}" has been re-enabled and locked until '
                    f"{rule.window_start} tomorrow"
                ),
                priority=1,
                target_id=rule.target_id,
            )
        )

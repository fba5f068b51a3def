"""In-process timer service on top of the asyncio event loop.

Wake-ups are held in memory only: after a restart the engine re-derives
them from the rule store via ``initialize()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .base import TimerService

logger = logging.getLogger("window-lock")

FireHandler = Callable[[str], Awaitable[None] | None]


@dataclass
class _Alarm:
    name: str
    when_ms: int
    period_ms: int | None
    handle: asyncio.TimerHandle | None = None


class AsyncioTimer(TimerService):
    """Named one-shot or periodic wake-ups delivered to ``on_fire``.

    A periodic alarm is re-armed at ``when + period`` before its handler
    runs, so a slow handler never shifts the schedule.

    Due times are wall-clock. The loop's own clock is monotonic and stops
    while the machine is suspended, so no single sleep is longer than
    ``max_sleep`` seconds; each wake-up re-checks the wall clock.
    """

    def __init__(
        self,
        on_fire: FireHandler | None = None,
        clock: Callable[[], float] = time.time,
        max_sleep: float = 30.0,
    ) -> None:
        self._on_fire = on_fire
        self._clock = clock
        self._max_sleep = max_sleep
        self._alarms: dict[str, _Alarm] = {}
        self._tasks: set[asyncio.Task] = set()

    def set_fire_handler(self, on_fire: FireHandler | None) -> None:
        self._on_fire = on_fire

    async def create(
        self, name: str, when_ms: int, period_ms: int | None = None
    ) -> None:
        self._clear(name)
        alarm = _Alarm(name=name, when_ms=int(when_ms), period_ms=period_ms)
        self._alarms[name] = alarm
        self._arm(alarm)

    async def cancel(self, name: str) -> bool:
        return self._clear(name)

    async def cancel_all(self) -> int:
        names = list(self._alarms)
        for name in names:
            self._clear(name)
        return len(names)

    def scheduled(self) -> dict[str, int]:
        """Next fire time (epoch ms) of every registered alarm."""
        return {name: a.when_ms for name, a in self._alarms.items()}

    # ── Internals ──────────────────────────────────────────

    def _clear(self, name: str) -> bool:
        alarm = self._alarms.pop(name, None)
        if alarm is None:
            return False
        if alarm.handle is not None:
            alarm.handle.cancel()
        return True

    def _arm(self, alarm: _Alarm) -> None:
        delay = max(0.0, alarm.when_ms / 1000 - self._clock())
        loop = asyncio.get_running_loop()
        alarm.handle = loop.call_later(
            min(delay, self._max_sleep), self._wake, alarm.name
        )

    def _wake(self, name: str) -> None:
        alarm = self._alarms.get(name)
        if alarm is None:
            return
        if self._clock() * 1000 < alarm.when_ms:
            self._arm(alarm)
            return
        self._fire(alarm)

    def _fire(self, alarm: _Alarm) -> None:
        name = alarm.name
        if alarm.period_ms:
            now_ms = self._clock() * 1000
            alarm.when_ms += alarm.period_ms
            # Skip missed periods (e.g. after suspend) instead of bursting
            while alarm.when_ms <= now_ms:
                alarm.when_ms += alarm.period_ms
            self._arm(alarm)
        else:
            self._alarms.pop(name, None)

        if self._on_fire is None:
            logger.debug(f"Alarm {name} fired with no handler")
            return
        try:
            result = self._on_fire(name)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        except Exception:
            logger.exception(f"Alarm handler failed for {name}")

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Async alarm handler failed", exc_info=exc)

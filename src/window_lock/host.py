"""Host runtime: delivers events to the lock engine one at a time.

Everything that can touch rules (startup, install/update, timer firings,
out-of-band rule file changes and user requests) goes through a single
asyncio queue, so engine operations never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .api import handle_request
from .base import RuleStore
from .rules.engine import LockEngine
from .timers import AsyncioTimer

logger = logging.getLogger("window-lock")


class HostEventKind(str, Enum):
    INSTALL = "install"
    STARTUP = "startup"
    TRIGGER_FIRED = "trigger_fired"
    STORE_CHANGED = "store_changed"
    REQUEST = "request"


@dataclass
class HostEvent:
    kind: HostEventKind
    trigger_name: str = ""
    request: dict[str, Any] = field(default_factory=dict)
    reply: asyncio.Future | None = None


class LockHost:
    """Owns the event queue, the timer wiring and the rules-file watcher."""

    def __init__(
        self,
        engine: LockEngine,
        store: RuleStore,
        timer: AsyncioTimer,
        store_poll_seconds: float = 5.0,
    ) -> None:
        self._engine = engine
        self._store = store
        self._timer = timer
        self._poll_seconds = store_poll_seconds
        self._queue: asyncio.Queue[HostEvent] = asyncio.Queue()
        self._fingerprint: str | None = None
        self._tasks: list[asyncio.Task] = []
        timer.set_fire_handler(self.on_timer_fired)

    # ── Event sources ──────────────────────────────────────

    def on_timer_fired(self, name: str) -> None:
        self._queue.put_nowait(HostEvent(HostEventKind.TRIGGER_FIRED, trigger_name=name))

    def post(self, kind: HostEventKind) -> None:
        self._queue.put_nowait(HostEvent(kind))

    async def request(self, request: dict[str, Any]) -> dict[str, Any]:
        """Queue a user request and wait for the engine's response."""
        reply = asyncio.get_running_loop().create_future()
        await self._queue.put(HostEvent(HostEventKind.REQUEST, request=request, reply=reply))
        return await reply

    # ── Processing ─────────────────────────────────────────

    async def handle(self, event: HostEvent) -> None:
        """Process one event to completion. Errors are logged, never raised."""
        try:
            if event.kind in (
                HostEventKind.INSTALL,
                HostEventKind.STARTUP,
                HostEventKind.STORE_CHANGED,
            ):
                logger.info(f"Host event: {event.kind.value}, re-deriving triggers")
                await self._engine.initialize()
            elif event.kind == HostEventKind.TRIGGER_FIRED:
                logger.info(f"Trigger fired: {event.trigger_name}")
                await self._engine.on_trigger_fired(event.trigger_name)
            elif event.kind == HostEventKind.REQUEST:
                response = await handle_request(self._engine, event.request)
                if event.reply is not None and not event.reply.done():
                    event.reply.set_result(response)
        except Exception as e:
            logger.exception(f"Host event {event.kind.value} failed")
            if event.reply is not None and not event.reply.done():
                event.reply.set_result(
                    {"success": False, "error": str(e), "error_type": "error"}
                )
        finally:
            # Our own writes must not look like out-of-band edits
            try:
                self._fingerprint = await self._store.fingerprint()
            except Exception as e:
                logger.debug(f"Store fingerprint unavailable: {e}")

    async def _process_events(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handle(event)
            finally:
                self._queue.task_done()

    async def check_store(self) -> bool:
        """Queue a STORE_CHANGED event if the rules changed behind our back."""
        current = await self._store.fingerprint()
        if current is None or current == self._fingerprint:
            return False
        logger.info("Rules changed outside this process")
        self._fingerprint = current
        self.post(HostEventKind.STORE_CHANGED)
        return True

    async def _watch_store(self) -> None:
        while True:
            await asyncio.sleep(self._poll_seconds)
            try:
                await self.check_store()
            except Exception as e:
                logger.warning(f"Rules watcher error: {e}")

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self, installed: bool = False) -> None:
        """Start processing; queues INSTALL or STARTUP as the first event."""
        self._fingerprint = await self._store.fingerprint()
        self.post(HostEventKind.INSTALL if installed else HostEventKind.STARTUP)
        self._tasks.append(asyncio.create_task(self._process_events()))
        if self._poll_seconds > 0:
            self._tasks.append(asyncio.create_task(self._watch_store()))

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self._timer.cancel_all()

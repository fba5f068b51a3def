"""Notification dispatch for lock events.

Routes engine events to every configured channel:
- "desktop": OS-native desktop notification (macOS / Linux / Windows)
- "ntfy": push notification via ntfy.sh (free, zero-signup)

With neither configured, events are only logged.
"""

from __future__ import annotations

__all__ = ["NotificationDispatcher"]

import logging

from ..base import Notifier
from ..config import NotificationsConfig
from ..models import NotificationEvent
from .desktop import DesktopNotifier
from .ntfy import NtfyNotifier

logger = logging.getLogger("window-lock")


class NotificationDispatcher(Notifier):
    """Fans a NotificationEvent out to desktop and ntfy."""

    def __init__(self, config: NotificationsConfig):
        self._config = config
        self._desktop = (
            DesktopNotifier(min_interval=config.min_interval)
            if config.desktop_enabled
            else None
        )
        self._ntfy = NtfyNotifier(
            default_topic=config.ntfy_topic,
            server_url=config.ntfy_server_url,
        )

    async def emit(self, event: NotificationEvent) -> None:
        logger.info(f"Notification [{event.id}]: {event.title} - {event.message}")
        if self._desktop:
            self._desktop.notify(
                event.title, event.message, key=event.id, priority=event.priority
            )
        if self._config.ntfy_topic:
            await self._ntfy.notify(event)

    async def close(self) -> None:
        """Clean up resources."""
        await self._ntfy.close()

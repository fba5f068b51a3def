"""ntfy.sh push notification delivery.

ntfy is a free, zero-signup push notification service. Subscribe to the
configured topic in the ntfy app to get window-open and re-enable events on
your phone.

Docs: https://docs.ntfy.sh/
"""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from ..models import NotificationEvent

logger = logging.getLogger("window-lock")

# event priority -> ntfy numeric priority
_NTFY_PRIORITY = {0: "2", 1: "3", 2: "4"}

# event id prefix -> ntfy emoji tags
_NTFY_TAGS = {
    "window_start": "unlock",
    "window_end": "lock",
}


class NtfyNotifier:
    """Push notifications via ntfy.sh (or self-hosted ntfy)."""

    def __init__(
        self,
        default_topic: str = "",
        server_url: str = "https://ntfy.sh",
    ):
        self._default_topic = default_topic
        self._server_url = server_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=15)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @staticmethod
    def _tags(event: NotificationEvent) -> str:
        for prefix, tags in _NTFY_TAGS.items():
            if event.id.startswith(prefix):
                return tags
        return "bell"

    async def notify(self, event: NotificationEvent, topic: str | None = None) -> bool:
        """POST the event as a plain-text ntfy message."""
        target_topic = topic or self._default_topic
        if not target_topic:
            return False

        url = f"{self._server_url}/{target_topic}"
        headers = {
            "Title": event.title,
            "Priority": _NTFY_PRIORITY.get(event.priority, "3"),
            "Tags": self._tags(event),
        }
        session = self._get_session()
        try:
            async with session.post(
                url, data=event.message.encode(), headers=headers
            ) as resp:
                ok = resp.status < 400
            if ok:
                logger.info(f"ntfy sent: {event.title}")
            else:
                logger.warning(f"ntfy failed: HTTP {resp.status}")
            return ok
        except Exception as e:
            logger.warning(f"ntfy error: {e}")
            return False

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None

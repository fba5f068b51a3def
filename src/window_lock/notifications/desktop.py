"""Desktop popups for lock events, using whatever the OS ships with.

macOS goes through terminal-notifier when installed and osascript
otherwise, Linux through notify-send, Windows through a PowerShell toast.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
import time

logger = logging.getLogger("window-lock")

APP_NAME = "Window Lock"

# event priority -> notify-send urgency
_LINUX_URGENCY = {0: "low", 1: "normal", 2: "critical"}

_WINDOWS_TOAST = (
    "$t = [Windows.UI.Notifications.ToastNotificationManager, "
    "Windows.UI.Notifications, ContentType = WindowsRuntime]; "
    "$xml = $t::GetTemplateContent("
    "[Windows.UI.Notifications.ToastTemplateType]::ToastText02); "
    "$n = $xml.GetElementsByTagName('text'); "
    "[void]$n[0].AppendChild($xml.CreateTextNode('{title}')); "
    "[void]$n[1].AppendChild($xml.CreateTextNode('{body}')); "
    "$t::CreateToastNotifier('{app}').Show("
    "[Windows.UI.Notifications.ToastNotification]::new($xml))"
)


class DesktopNotifier:
    """Shows one popup per lock event.

    The same event key (e.g. ``window_end_ext1``) is shown at most once per
    ``min_interval`` seconds, so a redelivered trigger does not pop up twice.
    """

    def __init__(self, min_interval: float = 10.0):
        self._min_interval = min_interval
        self._shown_at: dict[str, float] = {}
        self._platform = sys.platform
        self._terminal_notifier = shutil.which("terminal-notifier")

    def _due(self, key: str) -> bool:
        now = time.monotonic()
        previous = self._shown_at.get(key)
        if previous is not None and now - previous < self._min_interval:
            return False
        self._shown_at[key] = now
        return True

    def command(self, title: str, body: str, priority: int = 1) -> list[str] | None:
        """The argv that shows the popup here; None on unsupported platforms."""
        if self._platform == "darwin":
            if self._terminal_notifier:
                return [
                    self._terminal_notifier,
                    "-title", title,
                    "-message", body,
                    "-group", "window-lock",
                ]
            script = f'display notification "{_escape(body)}" with title "{_escape(title)}"'
            return ["osascript", "-e", script]
        if self._platform == "linux":
            urgency = _LINUX_URGENCY.get(priority, "normal")
            return ["notify-send", f"--app-name={APP_NAME}", f"--urgency={urgency}", title, body]
        if self._platform == "win32":
            script = _WINDOWS_TOAST.format(
                title=_escape(title), body=_escape(body), app=APP_NAME
            )
            return ["powershell", "-NoProfile", "-Command", script]
        return None

    def notify(self, title: str, body: str, key: str = "", priority: int = 1) -> bool:
        """Show a popup without waiting for it.

        Returns False when the key was shown recently, the platform has no
        notifier, or the command could not be started.
        """
        key = key or title
        if not self._due(key):
            logger.debug(f"Desktop notification {key!r} shown recently, skipping")
            return False

        cmd = self.command(title, body, priority)
        if cmd is None:
            logger.debug(f"No desktop notifier on {self._platform}")
            return False
        try:
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.warning(f"Desktop notification failed ({cmd[0]}): {e}")
            return False
        logger.info(f"Desktop notification: {title}")
        return True


def _escape(text: str) -> str:
    """Escape backslashes and quotes for AppleScript/PowerShell strings."""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("'", "\\'")

"""Tests for desktop popups."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from window_lock.notifications.desktop import DesktopNotifier, _escape

POPEN = "window_lock.notifications.desktop.subprocess.Popen"


def _notifier(platform: str, min_interval: float = 0, terminal_notifier: str | None = None):
    notifier = DesktopNotifier(min_interval=min_interval)
    notifier._platform = platform
    notifier._terminal_notifier = terminal_notifier
    return notifier


class TestCommand:
    def test_linux_urgency_follows_priority(self):
        cmd = _notifier("linux").command("Disable window open", "You can now disable", 2)
        assert cmd == [
            "notify-send",
            "--app-name=Window Lock",
            "--urgency=critical",
            "Disable window open",
            "You can now disable",
        ]

    def test_linux_unknown_priority_is_normal(self):
        assert "--urgency=normal" in _notifier("linux").command("T", "B", 7)

    def test_macos_terminal_notifier(self):
        notifier = _notifier("darwin", terminal_notifier="/opt/homebrew/bin/terminal-notifier")
        cmd = notifier.command("Target re-enabled", "locked until 21:00")
        assert cmd[0] == "/opt/homebrew/bin/terminal-notifier"
        assert cmd[cmd.index("-group") + 1] == "window-lock"

    def test_macos_osascript_escapes_quotes(self):
        cmd = _notifier("darwin").command("Title", 'You can now disable "uBlock"')
        assert cmd[:2] == ["osascript", "-e"]
        assert '\\"uBlock\\"' in cmd[2]

    def test_windows_toast(self):
        cmd = _notifier("win32").command("Title", "it's locked")
        assert cmd[0] == "powershell"
        assert "it\\'s locked" in cmd[-1]
        assert "CreateToastNotifier('Window Lock')" in cmd[-1]

    def test_unsupported_platform(self):
        assert _notifier("freebsd").command("T", "B") is None


class TestNotify:
    def test_dispatches_command(self):
        notifier = _notifier("linux")
        with patch(POPEN) as popen:
            assert notifier.notify("T", "B", key="window_end_ext1") is True
        assert popen.call_args[0][0][0] == "notify-send"

    def test_same_key_is_rate_limited(self):
        notifier = _notifier("linux", min_interval=60.0)
        with patch(POPEN) as popen:
            notifier.notify("Target re-enabled", "msg", key="window_end_ext1")
            assert notifier.notify("Target re-enabled", "msg", key="window_end_ext1") is False
        assert popen.call_count == 1

    def test_other_targets_not_rate_limited(self):
        notifier = _notifier("linux", min_interval=60.0)
        with patch(POPEN) as popen:
            notifier.notify("Target re-enabled", "msg", key="window_end_ext1")
            assert notifier.notify("Target re-enabled", "msg", key="window_end_ext2") is True
        assert popen.call_count == 2

    def test_rate_limit_expires(self):
        notifier = _notifier("linux", min_interval=0.05)
        with patch(POPEN) as popen:
            notifier.notify("First", "msg")
            time.sleep(0.06)
            assert notifier.notify("First", "msg") is True
        assert popen.call_count == 2

    def test_unsupported_platform_returns_false(self):
        with patch(POPEN) as popen:
            assert _notifier("freebsd").notify("T", "B") is False
        popen.assert_not_called()

    def test_missing_binary_returns_false(self):
        with patch(POPEN, side_effect=FileNotFoundError("notify-send")):
            assert _notifier("linux").notify("T", "B") is False


@pytest.mark.parametrize(
    "raw,escaped",
    [
        ('say "hi"', 'say \\"hi\\"'),
        ("it's", "it\\'s"),
        ("C:\\path", "C:\\\\path"),
    ],
)
def test_escape(raw, escaped):
    assert _escape(raw) == escaped

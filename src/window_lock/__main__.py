"""CLI entry point for Window Lock."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any

import click

from . import __version__
from .api import handle_request
from .base import TargetToggle
from .config import DEFAULT_CONFIG_PATH, WindowLockConfig, load_config, save_config
from .exceptions import ConfigError
from .notifications import NotificationDispatcher
from .rules.engine import LockEngine
from .rules.store import YamlRulesStore
from .timers import AsyncioTimer
from .toggles import FileToggle, SystemdToggle
from .window import format_duration, format_time_12h

logger = logging.getLogger("window-lock")


# ── Helpers ──────────────────────────────────────────────


def _configure_logging(verbose: bool = False) -> None:
    """Console logging plus a best-effort rotating file log."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(log_format, datefmt=date_format))

    handlers: list[logging.Handler] = [console]
    log_dir = Path("~/.window-lock/logs").expanduser()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        from logging.handlers import RotatingFileHandler

        file_handler = RotatingFileHandler(
            log_dir / "window-lock.log",
            maxBytes=2 * 1024 * 1024,
            backupCount=2,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
        handlers.append(file_handler)
    except OSError:
        pass

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, handlers=handlers, force=True
    )
    for noisy in ("aiohttp.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load(config_path: str | None) -> WindowLockConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _make_toggle(config: WindowLockConfig) -> TargetToggle:
    if config.toggle.backend == "systemd":
        return SystemdToggle(user=config.toggle.systemd_user)
    if config.toggle.backend == "file":
        return FileToggle(config.toggle.state_file)
    raise click.ClickException(f"Unknown toggle backend: {config.toggle.backend}")


def _make_engine(
    config: WindowLockConfig, timer: AsyncioTimer
) -> tuple[LockEngine, YamlRulesStore, NotificationDispatcher]:
    store = YamlRulesStore(config.rules_file)
    notifier = NotificationDispatcher(config.notifications)
    engine = LockEngine(
        store=store,
        timer=timer,
        toggle=_make_toggle(config),
        notifier=notifier,
        lockout=config.lockout.to_settings(),
        enforcement=config.enforcement.mode,
    )
    return engine, store, notifier


async def _one_shot(config: WindowLockConfig, request: dict[str, Any]) -> dict[str, Any]:
    """Run a single request in this process.

    Wake-ups registered here die with the process; a running ``window-lock
    run`` sees the rules file change and re-derives them.
    """
    engine, _, notifier = _make_engine(config, AsyncioTimer())
    try:
        return await handle_request(engine, request)
    finally:
        await notifier.close()


def _call(config_path: str | None, request: dict[str, Any]) -> dict[str, Any]:
    result = asyncio.run(_one_shot(_load(config_path), request))
    if not result.get("success"):
        raise click.ClickException(result.get("error", "request failed"))
    return result


# ── CLI Commands ─────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="window-lock")
def main() -> None:
    """Window Lock: keep things switched on outside their disable window."""


@main.command()
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
def init(config_path: str | None, force: bool) -> None:
    """Write a default config file."""
    path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
    if path.exists() and not force:
        click.echo(f"Config already exists: {path}")
        return
    saved = save_config(WindowLockConfig(), path)
    click.echo(f"Config written to {saved}")


@main.command()
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--install", "installed", is_flag=True, help="Treat this start as install/update")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def run(config_path: str | None, installed: bool, verbose: bool) -> None:
    """Run the scheduler: fire window triggers and serve the control API."""
    from .control_api import start_control_api
    from .host import LockHost

    _configure_logging(verbose)
    config = _load(config_path)

    async def _serve() -> None:
        timer = AsyncioTimer()
        engine, store, notifier = _make_engine(config, timer)
        host = LockHost(engine, store, timer, config.host.store_poll_seconds)
        await host.start(installed=installed)

        runner = None
        if config.control_api.enabled:
            runner = await start_control_api(
                host.request,
                config.control_api.host,
                config.control_api.port,
                config.control_api.auth_token,
            )

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows
        logger.info(f"window-lock {__version__} running (rules: {store.path})")
        try:
            await stop.wait()
        finally:
            logger.info("Shutting down")
            if runner is not None:
                await runner.cleanup()
            await host.stop()
            await notifier.close()

    asyncio.run(_serve())


@main.command(name="list")
@click.option("--config", "config_path", default=None, help="Config file path")
def list_rules(config_path: str | None) -> None:
    """List every lock rule."""
    result = _call(config_path, {"action": "get_all_rules"})
    rules = result["rules"]
    if not rules:
        click.echo("No locked targets yet.")
        return
    for target_id, rule in rules.items():
        locked = _call(config_path, {"action": "is_locked", "target_id": target_id})
        if not rule["enabled"]:
            state = "disabled"
        elif locked["locked"]:
            state = "locked"
        else:
            state = "in disable window"
        click.echo(
            f"{target_id}: {format_time_12h(rule['window_start'])} - "
            f"{format_time_12h(rule['window_end'])} ({state})"
        )


@main.command()
@click.argument("target_id")
@click.option("--config", "config_path", default=None, help="Config file path")
def status(target_id: str, config_path: str | None) -> None:
    """Show the lock state of one target."""
    rule = _call(config_path, {"action": "get_rule", "target_id": target_id})["rule"]
    if rule is None:
        click.echo(f"{target_id}: no lock rule")
        return
    locked = _call(config_path, {"action": "is_locked", "target_id": target_id})["locked"]
    wait = _call(config_path, {"action": "time_until_edit_allowed", "target_id": target_id})
    click.echo(f"Target:   {target_id}")
    click.echo(f"Window:   {rule['window_start']} - {rule['window_end']}")
    click.echo(f"State:    {'locked' if locked else 'in disable window'}")
    if wait["seconds_remaining"] > 0:
        remaining = timedelta(seconds=wait["seconds_remaining"])
        click.echo(f"Editable: in {format_duration(remaining)}")
    else:
        click.echo("Editable: now")


@main.command(name="set")
@click.argument("target_id")
@click.argument("window_start")
@click.argument("window_end")
@click.option("--no-notify", is_flag=True, help="Don't notify when the window opens")
@click.option("--config", "config_path", default=None, help="Config file path")
def set_rule(
    target_id: str,
    window_start: str,
    window_end: str,
    no_notify: bool,
    config_path: str | None,
) -> None:
    """Lock TARGET_ID outside the daily window WINDOW_START-WINDOW_END (HH:MM)."""
    result = _call(
        config_path,
        {
            "action": "set_rule",
            "target_id": target_id,
            "window_start": window_start,
            "window_end": window_end,
            "notify": not no_notify,
        },
    )
    rule = result["rule"]
    click.echo(
        f"Lock set for {target_id}: may be disabled "
        f"{rule['window_start']}-{rule['window_end']}"
    )


@main.command()
@click.argument("target_id")
@click.option("--config", "config_path", default=None, help="Config file path")
def remove(target_id: str, config_path: str | None) -> None:
    """Remove the lock from TARGET_ID."""
    result = _call(config_path, {"action": "remove_rule", "target_id": target_id})
    if result["removed"]:
        click.echo(f"Lock removed for {target_id}")
    else:
        click.echo(f"{target_id} had no lock")


@main.command()
@click.argument("target_id")
@click.option("--config", "config_path", default=None, help="Config file path")
def enable(target_id: str, config_path: str | None) -> None:
    """Switch TARGET_ID on."""
    _call(
        config_path,
        {"action": "set_target_enabled", "target_id": target_id, "enabled": True},
    )
    click.echo(f"{target_id} enabled")


@main.command()
@click.argument("target_id")
@click.option("--config", "config_path", default=None, help="Config file path")
def disable(target_id: str, config_path: str | None) -> None:
    """Switch TARGET_ID off (refused while it is locked)."""
    _call(
        config_path,
        {"action": "set_target_enabled", "target_id": target_id, "enabled": False},
    )
    click.echo(f"{target_id} disabled")


@main.command(name="add-target")
@click.argument("target_id")
@click.option("--name", default="", help="Human-readable label")
@click.option("--config", "config_path", default=None, help="Config file path")
def add_target(target_id: str, name: str, config_path: str | None) -> None:
    """Register TARGET_ID with the file toggle backend."""
    config = _load(config_path)
    toggle = _make_toggle(config)
    if not isinstance(toggle, FileToggle):
        raise click.ClickException("add-target only applies to the 'file' toggle backend")
    state = asyncio.run(toggle.add(target_id, name=name))
    click.echo(f"Target {state.label} registered ({'on' if state.enabled else 'off'})")


@main.command(name="targets")
@click.option("--config", "config_path", default=None, help="Config file path")
def list_targets(config_path: str | None) -> None:
    """List targets registered with the file toggle backend."""
    config = _load(config_path)
    toggle = _make_toggle(config)
    if not isinstance(toggle, FileToggle):
        raise click.ClickException("targets only applies to the 'file' toggle backend")
    states = asyncio.run(toggle.list_targets())
    if not states:
        click.echo("No targets registered. Use 'window-lock add-target'.")
        return
    for state in states:
        click.echo(f"{state.target_id}: {state.label} ({'on' if state.enabled else 'off'})")


if __name__ == "__main__":
    main()

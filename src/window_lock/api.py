"""Request/response surface over the lock engine.

A request is a plain dict with an ``action`` and its arguments; the answer
is a JSON-serializable dict with ``success`` plus either the result or an
``error``/``error_type`` pair. The CLI, the HTTP control API and the host
event queue all speak this shape.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import (
    InvalidTimeFormatError,
    LockoutActiveError,
    StoreUnavailableError,
    TargetLockedError,
    TargetNotFoundError,
    WindowLockError,
)
from .models import Rule
from .rules.engine import LockEngine

logger = logging.getLogger("window-lock")

ACTIONS = (
    "is_locked",
    "set_rule",
    "remove_rule",
    "get_rule",
    "get_all_rules",
    "time_until_edit_allowed",
    "set_target_enabled",
)

_ERROR_TYPES: list[tuple[type[Exception], str]] = [
    (InvalidTimeFormatError, "invalid_time_format"),
    (LockoutActiveError, "lockout_active"),
    (TargetNotFoundError, "target_not_found"),
    (TargetLockedError, "target_locked"),
    (StoreUnavailableError, "store_unavailable"),
    (WindowLockError, "error"),
]


class LockRequest(BaseModel):
    action: str
    target_id: str = ""
    window_start: str = ""
    window_end: str = ""
    notify: bool = True
    enabled: bool = True


def rule_to_dict(rule: Rule | None) -> dict[str, Any] | None:
    if rule is None:
        return None
    return rule.model_dump(mode="json")


def error_response(error: Exception) -> dict[str, Any]:
    error_type = next(
        (code for cls, code in _ERROR_TYPES if isinstance(error, cls)), "error"
    )
    response: dict[str, Any] = {
        "success": False,
        "error": str(error),
        "error_type": error_type,
    }
    if isinstance(error, LockoutActiveError):
        response["retry_after_seconds"] = int(error.remaining.total_seconds())
    if isinstance(error, TargetLockedError) and error.unlocks_at is not None:
        response["unlocks_at"] = error.unlocks_at.isoformat()
    return response


async def handle_request(
    engine: LockEngine, request: dict[str, Any], now: datetime | None = None
) -> dict[str, Any]:
    """Run one request against ``engine`` and build the response dict.

    Engine errors are reported in the response; anything unexpected
    propagates to the caller.
    """
    try:
        req = LockRequest(**request)
    except (TypeError, ValidationError) as e:
        return {"success": False, "error": f"Malformed request: {e}", "error_type": "bad_request"}

    if req.action not in ACTIONS:
        return {"success": False, "error": "Unknown action", "error_type": "bad_request"}
    if req.action != "get_all_rules" and not req.target_id:
        return {"success": False, "error": "target_id is required", "error_type": "bad_request"}

    try:
        if req.action == "is_locked":
            locked = await engine.is_locked(req.target_id, now)
            return {"success": True, "locked": locked}
        if req.action == "set_rule":
            rule = await engine.set_rule(
                req.target_id, req.window_start, req.window_end, req.notify, now
            )
            return {"success": True, "rule": rule_to_dict(rule)}
        if req.action == "remove_rule":
            removed = await engine.remove_rule(req.target_id)
            return {"success": True, "removed": removed}
        if req.action == "get_rule":
            rule = await engine.get_rule(req.target_id)
            return {"success": True, "rule": rule_to_dict(rule)}
        if req.action == "get_all_rules":
            rules = await engine.get_all_rules()
            return {
                "success": True,
                "rules": {tid: rule_to_dict(r) for tid, r in rules.items()},
            }
        if req.action == "time_until_edit_allowed":
            remaining = await engine.time_until_edit_allowed(req.target_id, now)
            return {
                "success": True,
                "seconds_remaining": int(remaining.total_seconds()),
                "hours_remaining": remaining.total_seconds() / 3600,
            }
        # set_target_enabled
        state = await engine.set_target_enabled(req.target_id, req.enabled, now)
        return {"success": True, "target": state.model_dump(mode="json")}
    except WindowLockError as e:
        logger.info(f"Request {req.action} for {req.target_id or '*'} failed: {e}")
        return error_response(e)

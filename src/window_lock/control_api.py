"""HTTP control API over the lock engine's request surface.

Every route builds a request dict and hands it to ``submit`` (normally
``LockHost.request``), so HTTP calls are serialized with timer events.

Routes:
    GET    /                              API overview
    GET    /rules                         all rules
    GET    /rules/{target_id}             one rule
    PUT    /rules/{target_id}             create/update {window_start, window_end, notify?}
    DELETE /rules/{target_id}             remove
    GET    /rules/{target_id}/locked      {locked: bool}
    GET    /rules/{target_id}/edit-wait   time until the rule may be edited
    PUT    /targets/{target_id}/enabled   {enabled: bool}
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from . import __version__

logger = logging.getLogger("window-lock")

Submit = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

_STATUS_BY_ERROR = {
    "bad_request": 400,
    "invalid_time_format": 400,
    "target_not_found": 404,
    "lockout_active": 429,
    "target_locked": 423,
    "store_unavailable": 503,
}


def _json_error(status: int, code: str, message: str) -> web.Response:
    """Consistent JSON error payload."""
    return web.json_response({"code": code, "message": message}, status=status)


def _to_response(result: dict[str, Any]) -> web.Response:
    if result.get("success"):
        return web.json_response(result)
    code = result.get("error_type", "error")
    status = _STATUS_BY_ERROR.get(code, 500)
    resp = web.json_response(result, status=status)
    if "retry_after_seconds" in result:
        resp.headers["Retry-After"] = str(result["retry_after_seconds"])
    return resp


async def _read_json(request: web.Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except Exception:
        return None
    return body if isinstance(body, dict) else None


def create_control_app(submit: Submit, auth_token: str = "") -> web.Application:
    """Create the aiohttp app.

    Args:
        submit: Coroutine taking a request dict and returning the response
            dict (see ``window_lock.api``).
        auth_token: Bearer token required on every route except ``/``.
            Empty disables auth.
    """
    routes = web.RouteTableDef()

    @routes.get("/")
    async def index(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "name": "window-lock",
                "version": __version__,
                "endpoints": [
                    "GET /rules",
                    "GET /rules/{target_id}",
                    "PUT /rules/{target_id}",
                    "DELETE /rules/{target_id}",
                    "GET /rules/{target_id}/locked",
                    "GET /rules/{target_id}/edit-wait",
                    "PUT /targets/{target_id}/enabled",
                ],
            }
        )

    @routes.get("/rules")
    async def get_rules(request: web.Request) -> web.Response:
        return _to_response(await submit({"action": "get_all_rules"}))

    @routes.get("/rules/{target_id}")
    async def get_rule(request: web.Request) -> web.Response:
        target_id = request.match_info["target_id"]
        result = await submit({"action": "get_rule", "target_id": target_id})
        if result.get("success") and result.get("rule") is None:
            return _json_error(404, "rule_not_found", f"No rule for '{target_id}'")
        return _to_response(result)

    @routes.put("/rules/{target_id}")
    async def put_rule(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if body is None:
            return _json_error(400, "invalid_json", "Request body must be a JSON object")
        notify = body.get("notify", True)
        if not isinstance(notify, bool):
            return _json_error(400, "invalid_notify", "'notify' must be true or false")
        start = str(body.get("window_start", "")).strip()
        end = str(body.get("window_end", "")).strip()
        if not start or not end:
            return _json_error(
                400, "missing_fields", "Both 'window_start' and 'window_end' are required"
            )
        return _to_response(
            await submit(
                {
                    "action": "set_rule",
                    "target_id": request.match_info["target_id"],
                    "window_start": start,
                    "window_end": end,
                    "notify": notify,
                }
            )
        )

    @routes.delete("/rules/{target_id}")
    async def delete_rule(request: web.Request) -> web.Response:
        return _to_response(
            await submit(
                {"action": "remove_rule", "target_id": request.match_info["target_id"]}
            )
        )

    @routes.get("/rules/{target_id}/locked")
    async def get_locked(request: web.Request) -> web.Response:
        return _to_response(
            await submit({"action": "is_locked", "target_id": request.match_info["target_id"]})
        )

    @routes.get("/rules/{target_id}/edit-wait")
    async def get_edit_wait(request: web.Request) -> web.Response:
        return _to_response(
            await submit(
                {
                    "action": "time_until_edit_allowed",
                    "target_id": request.match_info["target_id"],
                }
            )
        )

    @routes.put("/targets/{target_id}/enabled")
    async def put_enabled(request: web.Request) -> web.Response:
        body = await _read_json(request)
        if body is None or not isinstance(body.get("enabled"), bool):
            return _json_error(400, "missing_fields", "Body must be {\"enabled\": true|false}")
        return _to_response(
            await submit(
                {
                    "action": "set_target_enabled",
                    "target_id": request.match_info["target_id"],
                    "enabled": body["enabled"],
                }
            )
        )

    # ── Auth middleware ─────────────────────────────────

    @web.middleware
    async def auth_middleware(
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        if not auth_token or request.path == "/":
            return await handler(request)
        if request.headers.get("Authorization", "") == f"Bearer {auth_token}":
            return await handler(request)
        return _json_error(401, "unauthorized", "Missing or invalid bearer token")

    app = web.Application(middlewares=[auth_middleware])
    app.add_routes(routes)
    return app


async def start_control_api(
    submit: Submit, host: str, port: int, auth_token: str = ""
) -> web.AppRunner:
    """Serve the control API; returns the runner so the caller can clean up."""
    runner = web.AppRunner(create_control_app(submit, auth_token))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Control API listening on http://{host}:{port}")
    return runner

"""HTTP endpoints for performing actions.

``POST /api/action/{namespace}/{verb}`` passes the request body as the arg
map; ``POST /api/action/{namespace}/{verb}/{database_id}`` passes
``{"database": database_id, "arg": body}``, which bulk actions expect.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from writeback.auth import User, as_user
from writeback.errors import ActionError, FeatureDisabled, ValidationFailure
from writeback.executor import ActionExecutor
from writeback.settings import ENABLE_ACTIONS

logger = logging.getLogger(__name__)

_executor_key = web.AppKey("executor", ActionExecutor)
_users_key = web.AppKey("users", dict)

API_PREFIX = "/api/action"


def _error_response(error: ActionError) -> web.Response:
    return web.json_response(error.to_dict(), status=error.status_code)


@web.middleware
async def check_actions_enabled(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Reject every action route with 400 while Actions are disabled globally."""
    if request.path.startswith(API_PREFIX):
        executor = request.app[_executor_key]
        if not executor.settings.get(ENABLE_ACTIONS):
            return _error_response(FeatureDisabled("Actions are not enabled."))
    return await handler(request)


def _authenticate(request: web.Request) -> User:
    """Map a Bearer token to a configured user. Every action request needs one."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    users: dict[str, User] = request.app[_users_key]
    user = users.get(token.strip()) if scheme.lower() == "bearer" else None
    if user is None:
        message = "Invalid token" if header else "Missing Authorization header"
        raise web.HTTPUnauthorized(
            text=json.dumps({"kind": "unauthenticated", "message": message}),
            content_type="application/json",
        )
    return user


async def _read_body(request: web.Request) -> Any:
    if not request.body_exists:
        return {}
    try:
        return await request.json()
    except json.JSONDecodeError as exc:
        raise ValidationFailure(
            f"Request body is not valid JSON: {exc.msg}",
            details={"error": exc.msg, "path": "<body>"},
        ) from None


async def _perform(request: web.Request, arg_map_fn: Callable[[Any], Any]) -> web.Response:
    executor = request.app[_executor_key]
    action = f"{request.match_info['namespace']}/{request.match_info['verb']}"
    user = _authenticate(request)
    try:
        body = await _read_body(request)
        with as_user(user):
            result = await executor.perform_action(action, arg_map_fn(body))
    except ActionError as exc:
        return _error_response(exc)
    except Exception:
        logger.exception("Unexpected error performing %s", action)
        return web.json_response(
            {"kind": "handler-error", "message": "Internal error", "status_code": 500},
            status=500,
        )
    return web.json_response(result)


async def perform_action(request: web.Request) -> web.Response:
    return await _perform(request, lambda body: body)


async def perform_action_for_database(request: web.Request) -> web.Response:
    try:
        database_id = int(request.match_info["database_id"])
    except ValueError:
        return _error_response(
            ValidationFailure(f"Invalid database id: {request.match_info['database_id']!r}")
        )
    return await _perform(request, lambda body: {"database": database_id, "arg": body})


async def list_actions(request: web.Request) -> web.Response:
    executor = request.app[_executor_key]
    return web.json_response({"actions": executor.known_actions()})


def setup_api(
    app: web.Application,
    executor: ActionExecutor,
    users: dict[str, User] | None = None,
) -> None:
    """Register action routes and the enablement middleware on ``app``."""
    app[_executor_key] = executor
    app[_users_key] = users or {}
    app.middlewares.append(check_actions_enabled)
    app.router.add_get(API_PREFIX, list_actions)
    app.router.add_post(API_PREFIX + "/{namespace}/{verb}", perform_action)
    app.router.add_post(
        API_PREFIX + "/{namespace}/{verb}/{database_id}", perform_action_for_database
    )

"""Middleware classes for the mock gateway.

This module contains HTTP middleware for:
- Error handling: Converts ServerError exceptions to JSON responses
- API key validation: Checks ``x-api-key`` on project-scoped routes
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .shared import ServerError, get_projects

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

PROJECTS_PREFIX = "/warlotSql/projects/"


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to handle ServerError exceptions globally.

    Catches ServerError exceptions and converts them to the gateway's JSON
    error shape with the appropriate HTTP status code.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except ServerError as e:
            return JSONResponse(
                {"ok": False, "error": e.message, "code": e.code},
                status_code=e.status_code,
            )


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Middleware to validate the ``x-api-key`` header.

    Every route under ``/warlotSql/projects/{project_id}/`` requires a key
    issued for that project. Routes that skip validation:
    - Project initialization (no project yet)
    - Project resolution (lookup by holder and name)
    - Everything outside the projects prefix (e.g. ``/auth/issue``)
    """

    # Exact paths that skip key validation
    SKIP_PATHS = frozenset([
        "/warlotSql/projects/init",
        "/warlotSql/projects/resolve",
    ])

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        if path in self.SKIP_PATHS or not path.startswith(PROJECTS_PREFIX):
            return await call_next(request)

        project_id = path[len(PROJECTS_PREFIX):].split("/", 1)[0]
        key = request.headers.get("x-api-key", "")
        await run_in_threadpool(get_projects(request).check_key, project_id, key)
        return await call_next(request)

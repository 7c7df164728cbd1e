"""Content-Security-Policy header injection middleware."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Union

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from cspolicy.constants import HEADER_ENFORCE, HEADER_REPORT_ONLY

logger = structlog.get_logger()

# A compiled header value, or a callable returning one per request
PolicySource = Union[str, Callable[[], str]]


class CSPMiddleware(BaseHTTPMiddleware):
    """Set the policy header on every response that lacks one.

    Endpoints that set their own (more specific) policy keep it, so a route
    can relax or tighten the application-wide policy.
    """

    def __init__(self, app: ASGIApp, policy: PolicySource, report_only: bool = False) -> None:
        super().__init__(app)
        self._policy = policy
        self._header = HEADER_REPORT_ONLY if report_only else HEADER_ENFORCE

    def _current_policy(self) -> str:
        if callable(self._policy):
            return self._policy()
        return self._policy

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        if self._header in response.headers:
            return response
        policy = self._current_policy()
        if policy:
            response.headers[self._header] = str(policy)
        else:
            logger.debug("csp_header_skipped", path=request.url.path, reason="empty policy")
        return response

"""Intake endpoint for browser-submitted CSP violation reports.

Browsers POST a JSON document to the policy's report-uri:

    {"csp-report": {"document-uri": "...", "referrer": "...",
                    "blocked-uri": "...", "violated-directive": "...",
                    "original-policy": "..."}}

ViolationHandler is a plain ASGI app so it can be mounted at any path and
answer every method itself (non-POST requests get 405 + ``Allow: POST``).
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import Receive, Scope, Send

logger = structlog.get_logger()

REPORT_MEDIA_TYPES = frozenset({"application/json", "application/csp-report"})

DEFAULT_MAX_BODY_BYTES = 64 * 1024


class CSPReport(BaseModel):
    """A description of a security policy violation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    document_uri: str = Field("", alias="document-uri")
    referrer: str = ""
    blocked_uri: str = Field("", alias="blocked-uri")
    violated_directive: str = Field("", alias="violated-directive")
    original_policy: str = Field("", alias="original-policy")


class Violation(BaseModel):
    """A policy violation reported by a browser."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    report: CSPReport | None = Field(None, alias="csp-report")


ViolationCallback = Callable[
    [Violation], Union[Response, None, Awaitable[Union[Response, None]]]
]


def media_type(content_type: str) -> str:
    """Return the media type of a Content-Type header, without parameters."""
    return content_type.split(";", 1)[0].strip().lower()


async def _drain(request: Request, limit: int) -> tuple[bytes, bool]:
    """Read the whole request body, keeping at most ``limit`` bytes.

    Returns (body, oversized). The stream is always consumed to the end.
    """
    chunks: list[bytes] = []
    size = 0
    oversized = False
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            oversized = True
            chunks.clear()
            continue
        chunks.append(chunk)
    return b"".join(chunks), oversized


class ViolationHandler:
    """Decode violation reports and hand them to a callback.

    - non-POST            -> 405, ``Allow: POST``
    - wrong media type    -> 415
    - body over the limit -> 413
    - malformed body      -> 400
    - otherwise the callback runs and its Response (or an empty 200) is sent

    The media type is compared after trimming whitespace and lowercasing, so
    ``Application/JSON`` is accepted even though it is not an exact match.
    The body must be exactly one JSON object: a ``null`` body or trailing data
    after the object is a 400.
    """

    def __init__(
        self,
        callback: ViolationCallback | None = None,
        *,
        max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    ) -> None:
        self.callback = callback
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def handle(self, request: Request) -> Response:
        body, oversized = await _drain(request, self.max_body_bytes)

        if request.method != "POST":
            logger.warning("csp_report_rejected", reason="method", method=request.method)
            return PlainTextResponse(
                "this resource only accepts POST requests\n",
                status_code=405,
                headers={"Allow": "POST"},
            )

        mime = media_type(request.headers.get("content-type", ""))
        if mime not in REPORT_MEDIA_TYPES:
            logger.warning("csp_report_rejected", reason="content_type", content_type=mime)
            return PlainTextResponse(
                "content-type not one of {application/json, application/csp-report}\n",
                status_code=415,
            )

        if oversized:
            logger.warning("csp_report_rejected", reason="too_large", limit=self.max_body_bytes)
            return PlainTextResponse("request entity too large\n", status_code=413)

        try:
            violation = Violation.model_validate_json(body)
        except ValidationError as exc:
            logger.warning("csp_report_rejected", reason="invalid_body", errors=exc.error_count())
            return PlainTextResponse("invalid request entity\n", status_code=400)

        report = violation.report
        logger.info(
            "csp_violation_received",
            document_uri=report.document_uri if report else "",
            blocked_uri=report.blocked_uri if report else "",
            violated_directive=report.violated_directive if report else "",
        )

        result = None
        if self.callback is not None:
            result = self.callback(violation)
            if inspect.isawaitable(result):
                result = await result
        if isinstance(result, Response):
            return result
        return Response(status_code=200)

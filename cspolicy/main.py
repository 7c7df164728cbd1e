"""Demo FastAPI application serving CSP-protected pages.

The landing page embeds images and scripts of suspect origins. The
application-wide policy blocks them; /images and /danger-zone apply forks of
that policy which relax it for images and inline scripts respectively.
Violations are POSTed by the browser to the configured report path.
"""

from __future__ import annotations

import itertools
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import HTMLResponse, PlainTextResponse

from cspolicy.config.loader import get_settings, load_settings, register_reload_handler
from cspolicy.config.presets import build_all, load_presets
from cspolicy.logging_config import setup_logging
from cspolicy.middleware import CSPMiddleware
from cspolicy.policy import CompiledPolicy
from cspolicy.violation import Violation, ViolationHandler

logger = structlog.get_logger()

_PAGE = """
<html>
<body>
    <strong>Boom!</strong>
    <img src="https://travis-ci.org/bmatsuo/go-httpcsp.png?branch=master"/>
    <strong>Zing!</strong>
    <script type="text/javascript">alert("malicious stuff...");</script>
    <script type="text/javascript" src="http://example.com/malicious.js"></script>
</body>
</html>
"""

# Compiled presets, keyed by (policies_file, deterministic_order)
_compiled: dict[tuple[str, bool], dict[str, CompiledPolicy]] = {}

_violation_ids = itertools.count(1)


def compiled_policies() -> dict[str, CompiledPolicy]:
    """Compile every configured preset, caching per settings."""
    settings = get_settings()
    key = (settings.policies_file, settings.deterministic_order)
    if key not in _compiled:
        presets = load_presets(settings.policies_file)
        policies = build_all(presets, deterministic_order=settings.deterministic_order)
        # Presets ship with the application, so an invalid one is fatal.
        _compiled[key] = {name: p.must_compile() for name, p in policies.items()}
        logger.info("policies_compiled", names=sorted(_compiled[key]))
    return _compiled[key]


def reset_compiled_cache() -> None:
    """Drop compiled policies (for testing and reload)."""
    _compiled.clear()


def _policy(name: str) -> CompiledPolicy:
    return compiled_policies()[name]


def _default_policy() -> CompiledPolicy:
    return _policy(get_settings().default_policy)


def _page_with(name: str) -> HTMLResponse:
    response = HTMLResponse(_PAGE)
    response.headers[_HEADER] = _policy(name)
    return response


def record_violation(violation: Violation) -> PlainTextResponse:
    """Log a violation report and answer with its sequential id."""
    violation_id = next(_violation_ids)
    report = violation.report
    logger.warning(
        "csp_violation",
        violation_id=violation_id,
        report=report.model_dump(by_alias=True) if report else None,
    )
    return PlainTextResponse(f"violation id: {violation_id}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup lifecycle: configure logging and compile presets eagerly."""
    settings = load_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)
    register_reload_handler(reset_compiled_cache)
    reset_compiled_cache()
    compiled_policies()
    logger.info("csp_demo_started", default_policy=settings.default_policy)
    yield


# Enforcing vs report-only is fixed at startup; reloads only swap policies.
_REPORT_ONLY = get_settings().report_only
_HEADER = CompiledPolicy.header_name(_REPORT_ONLY)

app = FastAPI(title="cspolicy demo", lifespan=lifespan)
app.add_middleware(CSPMiddleware, policy=_default_policy, report_only=_REPORT_ONLY)

# The report endpoint serves no HTML and answers every method itself.
app.add_route(
    get_settings().report_path,
    ViolationHandler(record_violation, max_body_bytes=get_settings().max_report_bytes),
    include_in_schema=False,
)


@app.get("/", response_class=HTMLResponse)
async def root():
    return HTMLResponse(_PAGE)


@app.get("/images", response_class=HTMLResponse)
async def images():
    """Same page, but images from travis-ci.org may load."""
    return _page_with("images")


@app.get("/danger-zone", response_class=HTMLResponse)
async def danger_zone():
    """Same page, but inline scripts may run."""
    return _page_with("danger-zone")

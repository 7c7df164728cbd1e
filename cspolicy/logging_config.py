"""structlog setup shared by the demo server and the CLI."""

import logging
import sys
from typing import TextIO

import structlog

# Violation reports echo whole policies and URLs chosen by the browser
MAX_FIELD_CHARS = 1024


def _clip(value):
    if isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
        return value[:MAX_FIELD_CHARS] + "...[truncated]"
    if isinstance(value, dict):
        return {k: _clip(v) for k, v in value.items()}
    return value


def clip_long_fields(
    logger: logging.Logger, method_name: str, event_dict: dict
) -> dict:
    """Truncate oversized string fields, including those of a nested report."""
    for key, value in event_dict.items():
        if key != "event":
            event_dict[key] = _clip(value)
    return event_dict


def component_stamper(component: str) -> structlog.types.Processor:
    """Tag every event with the process role ("server" or "cli")."""

    def _stamp(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("component", component)
        return event_dict

    return _stamp


def setup_logging(
    log_level: str = "info",
    json_format: bool = True,
    stream: TextIO | None = None,
    component: str = "server",
) -> None:
    """Configure structlog for JSON or human-readable output.

    The server logs to stdout. The CLI passes stderr so that stdout carries
    only header values.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        component_stamper(component),
        clip_long_fields,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Violation reports are logged by the intake handler itself
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

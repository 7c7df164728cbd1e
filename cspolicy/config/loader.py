"""Env var config loading with pydantic-settings."""

from __future__ import annotations

import signal
from collections.abc import Callable
from pathlib import Path

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

_DEFAULT_POLICIES_PATH = Path(__file__).parent / "policies.yaml"


class CSPSettings(BaseSettings):
    """Policy service configuration, overridden by CSP_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="CSP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "info"
    log_json: bool = True

    # Sort compiled directives by name instead of declaration order
    deterministic_order: bool = False
    # Emit Content-Security-Policy-Report-Only instead of enforcing
    report_only: bool = False

    # Named policy presets
    policies_file: str = str(_DEFAULT_POLICIES_PATH)
    default_policy: str = "base"

    # Violation report intake
    report_path: str = "/policy/violation"
    max_report_bytes: int = 64 * 1024

    # Demo server
    listen_host: str = "127.0.0.1"
    listen_port: int = 8000


_settings: CSPSettings | None = None


def get_settings() -> CSPSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> CSPSettings:
    """Load settings from env vars (env vars override model defaults)."""
    global _settings
    _settings = CSPSettings()
    logger.info(
        "config_loaded",
        policies_file=_settings.policies_file,
        report_only=_settings.report_only,
    )
    return _settings


def register_reload_handler(*callbacks: Callable[[], None]) -> None:
    """Register SIGHUP handler that reloads settings and policy presets.

    Each callback runs after the reload, so caches derived from the presets
    (such as compiled policies) can be dropped too.
    """
    import threading

    if threading.current_thread() is not threading.main_thread():
        logger.debug("skipping_sighup_handler", reason="not main thread")
        return

    def _reload(signum, frame):
        from cspolicy.config.presets import reset_presets_cache

        logger.info("config_reload_triggered")
        load_settings()
        reset_presets_cache()
        for callback in callbacks:
            callback()

    try:
        signal.signal(signal.SIGHUP, _reload)
    except (ValueError, AttributeError):
        logger.debug("skipping_sighup_handler", reason="signal not supported")

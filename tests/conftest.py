"""Shared test fixtures."""

from __future__ import annotations

import logging
import sys

import pytest
import structlog


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch):
    """Provide default settings for all tests."""
    monkeypatch.setenv("CSP_LOG_JSON", "false")
    monkeypatch.setenv("CSP_LOG_LEVEL", "debug")

    # Reset cached settings and presets
    import cspolicy.config.loader as loader
    from cspolicy.config.presets import reset_presets_cache

    loader._settings = None
    reset_presets_cache()
    main_module = sys.modules.get("cspolicy.main")
    if main_module is not None:
        main_module.reset_compiled_cache()
    yield
    loader._settings = None
    reset_presets_cache()


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo setup_logging() so handlers never outlive a captured stream."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def preset_file(tmp_path):
    """Write a presets YAML file and return its path."""

    def _write(content: str):
        path = tmp_path / "policies.yaml"
        path.write_text(content)
        return path

    return _write

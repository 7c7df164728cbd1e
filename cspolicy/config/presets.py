"""Named policy presets loaded from YAML.

A preset is a mapping of directive names to a value or list of values, plus
an optional ``extends`` key naming a parent preset. Children are built by
forking the parent's Policy, so presets sharing a parent never affect each
other.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from cspolicy.errors import PresetError, UnknownDirective
from cspolicy.policy import Policy

logger = structlog.get_logger()

_EXTENDS_KEY = "extends"

# Cache loaded presets, keyed by file path
_presets: dict[str, dict[str, Any]] = {}


def load_presets(path: str | Path) -> dict[str, Any]:
    """Load presets from YAML, caching after first load."""
    key = str(path)
    if key in _presets:
        return _presets[key]
    preset_path = Path(path)
    if not preset_path.exists():
        logger.error("policy_presets_not_found", path=key)
        _presets[key] = {}
        return _presets[key]
    with open(preset_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise PresetError(f"{key}: top level must be a mapping of preset names")
    _presets[key] = data
    logger.info("policy_presets_loaded", path=key, count=len(data))
    return data


def reset_presets_cache() -> None:
    """Reset the presets cache (for testing and reload)."""
    _presets.clear()


def _values(name: str, directive: str, raw: Any) -> list[str]:
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list) and raw and all(isinstance(v, str) for v in raw):
        return raw
    raise PresetError(f"preset {name!r}: {directive} must be a string or a non-empty list of strings")


def build_policy(
    name: str,
    presets: dict[str, Any],
    deterministic_order: bool = False,
    _seen: tuple[str, ...] = (),
) -> Policy:
    """Build the Policy for a preset, forking its parent chain first."""
    if name in _seen:
        chain = " -> ".join((*_seen, name))
        raise PresetError(f"preset inheritance cycle: {chain}")
    if name not in presets:
        raise PresetError(f"unknown preset {name!r}")
    spec = presets[name] or {}
    if not isinstance(spec, dict):
        raise PresetError(f"preset {name!r} must be a mapping of directives")

    parent = spec.get(_EXTENDS_KEY)
    if parent is not None:
        policy = build_policy(parent, presets, deterministic_order, (*_seen, name))
    else:
        policy = Policy(deterministic_order=deterministic_order)

    for directive, raw in spec.items():
        if directive == _EXTENDS_KEY:
            continue
        try:
            policy = policy.add(directive, *_values(name, directive, raw))
        except UnknownDirective as exc:
            raise PresetError(f"preset {name!r}: {exc}") from exc
    return policy


def build_all(presets: dict[str, Any], deterministic_order: bool = False) -> dict[str, Policy]:
    """Build every preset in file order."""
    return {name: build_policy(name, presets, deterministic_order) for name in presets}

"""Directive compaction: merge repeated declarations into canonical value lists."""

from __future__ import annotations

from collections.abc import Iterable

from cspolicy.constants import NONE, NONE_DROPS_DIRECTIVE


def compact_values(values: Iterable[str]) -> list[str]:
    """Apply the none-override rule to one directive's values, in order.

    'none' discards everything declared before it. A later source replaces a
    lone 'none' and then accumulates normally.

    Example:
        >>> compact_values(["'self'", "'none'", "example.com", "https:"])
        ["example.com", "https:"]
    """
    result: list[str] = []
    for value in values:
        if value == NONE:
            result = [NONE]
        elif result == [NONE]:
            result = [value]
        else:
            result.append(value)
    return result


def compact(fragments: Iterable[tuple[str, str]]) -> dict[str, tuple[str, ...]]:
    """Group (name, value) fragments by directive and compact each group.

    Directives keep the order in which they were first declared. sandbox and
    report-uri are omitted entirely when they compact to a lone 'none'.
    """
    grouped: dict[str, list[str]] = {}
    for name, value in fragments:
        grouped.setdefault(name, []).append(value)

    compacted: dict[str, tuple[str, ...]] = {}
    for name, values in grouped.items():
        merged = compact_values(values)
        if name in NONE_DROPS_DIRECTIVE and merged == [NONE]:
            continue
        compacted[name] = tuple(merged)
    return compacted

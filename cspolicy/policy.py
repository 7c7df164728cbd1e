"""Persistent Content-Security-Policy builder.

A Policy is an append-only sequence of (directive, value) fragments. Every
builder call returns a new Policy backed by a freshly allocated tuple, so a
base policy can be forked into any number of variants without one branch
seeing another's additions:

    base = Policy().default_src(SELF).script_src(NONE).report_uri("/csp")
    images = base.img_src("cdn.example.com")
    inline = base.script_src(UNSAFE_INLINE)

Policies are compiled into the header value browsers parse. Compilation
compacts repeated declarations (see cspolicy.compaction) and validates each
directive against the CSP 1.0 grammar before rendering.
"""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from dataclasses import dataclass
from typing import NamedTuple

import structlog
from starlette.middleware import Middleware

from cspolicy.compaction import compact
from cspolicy.constants import (
    CONNECT_SRC,
    DEFAULT_SRC,
    DIRECTIVE_NAMES,
    FONT_SRC,
    FRAME_SRC,
    HEADER_ENFORCE,
    HEADER_REPORT_ONLY,
    IMG_SRC,
    MEDIA_SRC,
    OBJECT_SRC,
    REPORT_URI,
    SANDBOX,
    SCRIPT_SRC,
    STYLE_SRC,
)
from cspolicy.errors import FatalPolicyError, PolicyError, UnknownDirective
from cspolicy.middleware import CSPMiddleware
from cspolicy.validation import validate_directive

logger = structlog.get_logger()


class Fragment(NamedTuple):
    """A single value declared for a directive by one builder call."""

    name: str
    value: str


@dataclass(frozen=True)
class Directive:
    """A compacted directive: its name and canonical value list."""

    name: str
    values: tuple[str, ...]

    def render(self) -> str:
        """Render as ``name v1 v2 ...``, or "" when no value renders."""
        rendered = " ".join(v for v in self.values if v)
        if not rendered:
            return ""
        return f"{self.name} {rendered}"


class CompiledPolicy(str):
    """A validated, serialized policy ready to be set as a header value."""

    __slots__ = ()

    @staticmethod
    def header_name(report_only: bool = False) -> str:
        return HEADER_REPORT_ONLY if report_only else HEADER_ENFORCE

    def apply(self, headers: MutableMapping[str, str]) -> None:
        """Set the enforcing Content-Security-Policy header."""
        headers[HEADER_ENFORCE] = str(self)

    def apply_report_only(self, headers: MutableMapping[str, str]) -> None:
        """Set the Content-Security-Policy-Report-Only header."""
        headers[HEADER_REPORT_ONLY] = str(self)

    def middleware(self, report_only: bool = False) -> Middleware:
        """Middleware entry for ``Starlette(middleware=[...])``."""
        return Middleware(CSPMiddleware, policy=self, report_only=report_only)


class Policy:
    """Immutable, forkable sequence of directive fragments."""

    __slots__ = ("_fragments", "_deterministic_order")

    def __init__(self, *, deterministic_order: bool = False) -> None:
        self._fragments: tuple[Fragment, ...] = ()
        self._deterministic_order = deterministic_order

    @classmethod
    def _derive(cls, fragments: tuple[Fragment, ...], deterministic_order: bool) -> Policy:
        policy = cls(deterministic_order=deterministic_order)
        policy._fragments = fragments
        return policy

    @property
    def fragments(self) -> tuple[Fragment, ...]:
        return self._fragments

    @property
    def deterministic_order(self) -> bool:
        return self._deterministic_order

    def with_options(self, *, deterministic_order: bool) -> Policy:
        """Same fragments, different output ordering."""
        return self._derive(self._fragments, deterministic_order)

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self._fragments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Policy):
            return NotImplemented
        return (
            self._fragments == other._fragments
            and self._deterministic_order == other._deterministic_order
        )

    def __hash__(self) -> int:
        return hash((self._fragments, self._deterministic_order))

    def __repr__(self) -> str:
        inner = " ".join(f"{{{f.name} {f.value}}}" for f in self._fragments)
        return f"Policy([{inner}])"

    # ── builder ───────────────────────────────────────────────────────────

    def add(self, name: str, value: str, *values: str) -> Policy:
        """Return a new Policy with one fragment appended per value."""
        if name not in DIRECTIVE_NAMES:
            raise UnknownDirective(name)
        tokens = (value, *values)
        for token in tokens:
            if not isinstance(token, str):
                raise TypeError(f"{name} values must be str, got {type(token).__name__}")
        # Tuple concatenation always allocates; forks never share a tail.
        fragments = self._fragments + tuple(Fragment(name, t) for t in tokens)
        return self._derive(fragments, self._deterministic_order)

    def default_src(self, src: str, *srcs: str) -> Policy:
        return self.add(DEFAULT_SRC, src, *srcs)

    def script_src(self, src: str, *srcs: str) -> Policy:
        return self.add(SCRIPT_SRC, src, *srcs)

    def object_src(self, src: str, *srcs: str) -> Policy:
        return self.add(OBJECT_SRC, src, *srcs)

    def style_src(self, src: str, *srcs: str) -> Policy:
        return self.add(STYLE_SRC, src, *srcs)

    def img_src(self, src: str, *srcs: str) -> Policy:
        return self.add(IMG_SRC, src, *srcs)

    def media_src(self, src: str, *srcs: str) -> Policy:
        return self.add(MEDIA_SRC, src, *srcs)

    def frame_src(self, src: str, *srcs: str) -> Policy:
        return self.add(FRAME_SRC, src, *srcs)

    def font_src(self, src: str, *srcs: str) -> Policy:
        return self.add(FONT_SRC, src, *srcs)

    def connect_src(self, src: str, *srcs: str) -> Policy:
        return self.add(CONNECT_SRC, src, *srcs)

    def sandbox(self, token: str, *tokens: str) -> Policy:
        return self.add(SANDBOX, token, *tokens)

    def report_uri(self, uri: str, *uris: str) -> Policy:
        return self.add(REPORT_URI, uri, *uris)

    # ── check / compile ───────────────────────────────────────────────────

    def check(self) -> tuple[Directive, ...]:
        """Compact and validate the policy.

        Raises the first PolicyError encountered. With deterministic_order,
        directives are sorted by name; otherwise they keep first-declaration
        order.
        """
        directives = [Directive(name, values) for name, values in compact(self._fragments).items()]
        if self._deterministic_order:
            directives.sort(key=lambda d: d.name)
        for directive in directives:
            validate_directive(directive.name, directive.values)
        return tuple(directives)

    def compile(self) -> CompiledPolicy:
        """Check the policy and serialize it into a header value."""
        rendered = (d.render() for d in self.check())
        compiled = CompiledPolicy("; ".join(r for r in rendered if r))
        logger.debug("policy_compiled", fragments=len(self._fragments), policy=str(compiled))
        return compiled

    def must_compile(self) -> CompiledPolicy:
        """Compile a policy known to be valid when written.

        Not for policies built from untrusted input: any error is fatal.
        """
        try:
            return self.compile()
        except PolicyError as exc:
            logger.error("policy_compile_failed", token=exc.token, error=str(exc))
            raise FatalPolicyError(f"policy failed to compile: {exc}") from exc

"""Policy error taxonomy."""

from __future__ import annotations


class PolicyError(ValueError):
    """A malformed policy. Carries the offending token."""

    message = "invalid policy"

    def __init__(self, token: str, message: str | None = None) -> None:
        self.token = token
        if message is not None:
            self.message = message
        super().__init__(f"{self.message}: {token!r}")


class InvalidSource(PolicyError):
    message = "unexpected source"


class InvalidSandboxToken(PolicyError):
    message = "invalid sandbox token"


class InvalidReportURI(PolicyError):
    message = "invalid report uri"


class UnknownDirective(PolicyError):
    message = "unknown directive"


class FatalPolicyError(RuntimeError):
    """Raised by must_compile() when a policy asserted to be valid is not."""


class PresetError(ValueError):
    """A policy preset file that cannot be turned into policies."""

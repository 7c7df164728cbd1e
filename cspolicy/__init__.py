"""Content-Security-Policy (CSP 1.0) builder and violation report intake."""

__version__ = "0.1.0"

from cspolicy.constants import HTTPS, NONE, SELF, UNSAFE_EVAL, UNSAFE_INLINE
from cspolicy.errors import (
    FatalPolicyError,
    InvalidReportURI,
    InvalidSandboxToken,
    InvalidSource,
    PolicyError,
    UnknownDirective,
)
from cspolicy.middleware import CSPMiddleware
from cspolicy.policy import CompiledPolicy, Directive, Fragment, Policy
from cspolicy.violation import CSPReport, Violation, ViolationHandler

__all__ = [
    "CSPMiddleware",
    "CSPReport",
    "CompiledPolicy",
    "Directive",
    "FatalPolicyError",
    "Fragment",
    "HTTPS",
    "InvalidReportURI",
    "InvalidSandboxToken",
    "InvalidSource",
    "NONE",
    "Policy",
    "PolicyError",
    "SELF",
    "UNSAFE_EVAL",
    "UNSAFE_INLINE",
    "UnknownDirective",
    "Violation",
    "ViolationHandler",
]

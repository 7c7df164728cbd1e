"""Grammar validators for CSP 1.0 source lists, sandbox tokens and report URIs.

The scheme-source and host-source grammars are checked with small character
scanners rather than regular expressions:

    scheme-source = scheme ":"
    scheme        = ALPHA *( ALPHA / DIGIT / "+" / "-" / "." )
    host-source   = [ scheme "://" ] host [ ":" port ]
    host          = "*" / [ "*." ] 1*host-char *( "." 1*host-char )
    host-char     = ALPHA / DIGIT / "-"
    port          = 1*DIGIT / "*"
"""

from __future__ import annotations

import string
from collections.abc import Sequence
from urllib.parse import urlsplit

from cspolicy.constants import KEYWORD_SOURCES, NONE, REPORT_URI, SANDBOX
from cspolicy.errors import InvalidReportURI, InvalidSandboxToken, InvalidSource

_ALPHA = frozenset(string.ascii_letters)
_DIGIT = frozenset(string.digits)
_HEXDIG = frozenset(string.hexdigits)
_SCHEME_CHARS = _ALPHA | _DIGIT | frozenset("+-.")
_HOST_CHARS = _ALPHA | _DIGIT | frozenset("-")

# Separators and whitespace that may not appear in a sandbox token
_SANDBOX_FORBIDDEN = frozenset('()<>@,;:\\"/[]?={} \t\n')

# Whitespace separates source tokens, ';' directives and ',' policies
_URI_DELIMITERS = frozenset(" ;,")
_URI_HOST_CHARS = _ALPHA | _DIGIT | frozenset("-._~!$&'()*+=:[]<>\"%")


def _is_control(ch: str) -> bool:
    return ord(ch) < 0x20 or ord(ch) == 0x7F


def _is_scheme(text: str) -> bool:
    if not text or text[0] not in _ALPHA:
        return False
    return all(ch in _SCHEME_CHARS for ch in text[1:])


def _is_port(text: str) -> bool:
    if text == "*":
        return True
    return bool(text) and all(ch in _DIGIT for ch in text)


def _is_host(text: str) -> bool:
    if text == "*":
        return True
    if text.startswith("*."):
        text = text[2:]
    for label in text.split("."):
        if not label or any(ch not in _HOST_CHARS for ch in label):
            return False
    return True


def is_scheme_source(token: str) -> bool:
    """Match a bare scheme such as ``https:`` (nothing after the colon)."""
    return token.endswith(":") and _is_scheme(token[:-1])


def is_host_source(token: str) -> bool:
    """Match ``[scheme://]host[:port]`` with no path component."""
    rest = token
    scheme, sep, remainder = token.partition("://")
    if sep:
        if not _is_scheme(scheme):
            return False
        rest = remainder
    host, sep, port = rest.partition(":")
    if sep and not _is_port(port):
        return False
    return _is_host(host)


def validate_source(token: str) -> None:
    """Raise InvalidSource unless token is a keyword, scheme or host source."""
    if token in KEYWORD_SOURCES:
        return
    if is_scheme_source(token) or is_host_source(token):
        return
    raise InvalidSource(token)


def validate_source_list(values: Sequence[str]) -> None:
    """Validate the compacted values of a *-src directive.

    A list holding only 'none' is valid. Anywhere else 'none' is rejected
    like any other malformed source.
    """
    if not values:
        raise InvalidSource("", message="empty source list")
    if len(values) == 1 and values[0] == NONE:
        return
    for token in values:
        validate_source(token)


def validate_sandbox(values: Sequence[str]) -> None:
    """Reject sandbox tokens containing control characters, space or separators."""
    for token in values:
        for ch in token:
            if _is_control(ch) or ch in _SANDBOX_FORBIDDEN:
                raise InvalidSandboxToken(token)


def _has_bad_escape(token: str) -> bool:
    i = token.find("%")
    while i != -1:
        if len(token) < i + 3 or token[i + 1] not in _HEXDIG or token[i + 2] not in _HEXDIG:
            return True
        i = token.find("%", i + 3)
    return False


def _is_reg_name(host: str) -> bool:
    if host.startswith("["):
        # IP literal, bracket syntax already checked by urlsplit
        return True
    return all(ord(ch) >= 0x80 or ch in _URI_HOST_CHARS for ch in host)


def _is_uri_reference(token: str) -> bool:
    if any(_is_control(ch) or ch in _URI_DELIMITERS for ch in token):
        return False
    if _has_bad_escape(token):
        return False

    # A relative reference may not carry a colon in its first path segment,
    # otherwise it would be read as a (malformed) scheme.
    head = token.split("#", 1)[0].split("?", 1)[0]
    scheme, sep, _ = head.partition(":")
    if sep and not _is_scheme(scheme) and not head.startswith("/"):
        if ":" in head.split("/", 1)[0]:
            return False

    try:
        parts = urlsplit(token)
        # port is parsed lazily; reading it rejects non-numeric ports
        parts.port
    except ValueError:
        return False
    host = parts.netloc.rpartition("@")[2]
    if not host.startswith("["):
        host = host.partition(":")[0]
    return _is_reg_name(host)


def validate_report_uri(values: Sequence[str]) -> None:
    """Check each report-uri token is a syntactically valid URI reference."""
    for token in values:
        if not _is_uri_reference(token):
            raise InvalidReportURI(token)


def validate_directive(name: str, values: Sequence[str]) -> None:
    """Run the validator matching a directive name."""
    if name == SANDBOX:
        validate_sandbox(values)
    elif name == REPORT_URI:
        validate_report_uri(values)
    else:
        validate_source_list(values)

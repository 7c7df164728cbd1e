"""CSP 1.0 directive names and reserved source tokens."""

from __future__ import annotations

# Negates previously declared values for a directive. Only meaningful for
# *-src directives; on sandbox and report-uri a lone 'none' drops the directive.
NONE = "'none'"

# Keyword sources
SELF = "'self'"
UNSAFE_INLINE = "'unsafe-inline'"
UNSAFE_EVAL = "'unsafe-eval'"

# Common scheme source
HTTPS = "https:"

KEYWORD_SOURCES = frozenset({SELF, UNSAFE_INLINE, UNSAFE_EVAL})

DEFAULT_SRC = "default-src"
SCRIPT_SRC = "script-src"
OBJECT_SRC = "object-src"
STYLE_SRC = "style-src"
IMG_SRC = "img-src"
MEDIA_SRC = "media-src"
FRAME_SRC = "frame-src"
FONT_SRC = "font-src"
CONNECT_SRC = "connect-src"
SANDBOX = "sandbox"
REPORT_URI = "report-uri"

SOURCE_LIST_DIRECTIVES = (
    DEFAULT_SRC,
    SCRIPT_SRC,
    OBJECT_SRC,
    STYLE_SRC,
    IMG_SRC,
    MEDIA_SRC,
    FRAME_SRC,
    FONT_SRC,
    CONNECT_SRC,
)

DIRECTIVE_NAMES = frozenset({*SOURCE_LIST_DIRECTIVES, SANDBOX, REPORT_URI})

# Directives where a bare 'none' is not valid grammar
NONE_DROPS_DIRECTIVE = frozenset({SANDBOX, REPORT_URI})

HEADER_ENFORCE = "Content-Security-Policy"
HEADER_REPORT_ONLY = "Content-Security-Policy-Report-Only"

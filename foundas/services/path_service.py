"""Validation of claimable paths and redirect targets."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

DEFAULT_BASE_URL = "https://found.as"
MAX_PATH_LENGTH = 32

# Characters a browser would percent-encode or reinterpret in a URL path.
_UNSAFE_PATH_CHARS_RE = re.compile(r'[\x00-\x20"#<>?`{}\\\x7f]|[^\x00-\x7f]')
_DOT_SEGMENTS: frozenset[str] = frozenset({".", "..", "%2e", "%2e%2e", ".%2e", "%2e."})


def validate_path(path: str, max_length: int = MAX_PATH_LENGTH) -> bool:
    """Check that *path* is served verbatim at ``https://found.as/<path>``.

    A path is valid when URL parsing leaves it unchanged: no characters that
    would be percent-encoded, no query or fragment, no dot segments that would
    be collapsed away. The empty path is the site root and is valid.
    """
    if len(path) > max_length:
        return False
    if _UNSAFE_PATH_CHARS_RE.search(path):
        return False
    if any(segment.lower() in _DOT_SEGMENTS for segment in path.split("/")):
        return False
    parsed = urlsplit(f"{DEFAULT_BASE_URL}/{path}")
    return parsed.path == f"/{path}" and not parsed.query and not parsed.fragment


def public_url(path: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Visitor-facing URL of *path*."""
    return f"{base_url.rstrip('/')}/{path}"


def is_valid_redirect(url: str) -> bool:
    """Whether *url* parses as an absolute URL usable as a redirect target."""
    try:
        parsed = urlsplit(url.strip())
    except ValueError:
        return False
    if not parsed.scheme:
        return False
    if parsed.scheme in {"http", "https"}:
        return bool(parsed.netloc)
    return bool(parsed.netloc or parsed.path)

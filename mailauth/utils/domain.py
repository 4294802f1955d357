"""Turn free-form user input into a bare hostname."""
from __future__ import annotations

import re
from urllib.parse import urlsplit

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def _before_first_slash(text: str) -> str:
    return text.split("/", 1)[0]


def extract_domain(text: str) -> str:
    """Extract the hostname from a URL or domain string.

    Scheme, path, query and fragment are removed and surrounding
    whitespace is trimmed.  Input that cannot be parsed as a URL degrades
    to the text before the first slash; this function never raises.

    Examples:
        "https://example.com/path?q=1" -> "example.com"
        "example.com/path"             -> "example.com"
        "  https://sub.example.com  "  -> "sub.example.com"
        ""                             -> ""

    Args:
        text: User input such as a URL, bare domain or domain with path.

    Returns:
        The extracted hostname (possibly empty).
    """
    text = (text or "").strip()
    if not text:
        return ""

    if _SCHEME_RE.match(text):
        try:
            hostname = urlsplit(text).hostname
        except ValueError:
            hostname = None
        if hostname:
            return hostname
        return _before_first_slash(text)

    return _before_first_slash(text)

"""
URL helpers used by the resolution flow.

Candidate hosts are plain strings; these helpers decide which of them are
usable and normalize them before they are probed or persisted.
"""

import urllib.parse
from typing import Any, Iterable, List


def is_url(value: Any) -> bool:
    """Return True for strings with an http or https scheme prefix."""
    return isinstance(value, str) and (value.startswith("http://") or value.startswith("https://"))


def clean_url(url: str) -> str:
    """Strip trailing slashes."""
    return url.rstrip("/")


def valid_urls(values: Iterable[Any]) -> List[str]:
    """Filter to valid URLs, normalized, preserving order."""
    return [clean_url(value) for value in values if is_url(value)]


def domain_from_url(value: str) -> str:
    """Extract the hostname from a URL.

    Values that are not URLs, or cannot be parsed, are returned unchanged so
    that non-URL identifiers can still be reported.
    """
    if not value.startswith("http"):
        return value
    try:
        hostname = urllib.parse.urlparse(value).hostname
    except ValueError:
        return value
    return hostname or value


def push_unique(items: List[str], value: str) -> bool:
    """Append value unless already present. Returns True if appended."""
    if value in items:
        return False
    items.append(value)
    return True

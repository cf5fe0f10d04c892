from __future__ import annotations

from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

CRAWLABLE_SCHEMES = ("http", "https")


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlsplit(url.strip())
        # Accessing .port validates it
        parsed.port
    except (ValueError, AttributeError):
        return False
    return parsed.scheme.lower() in CRAWLABLE_SCHEMES and bool(parsed.hostname)


def normalize_url(url: str) -> Optional[str]:
    """Canonical form used as the dedup key, or None if the URL can't be crawled.

    Scheme and host are lower-cased, the fragment is dropped and an empty
    path becomes "/". Query strings are kept verbatim.
    """
    if not url or not is_valid_url(url):
        return None
    parsed = urlsplit(url.strip())
    path = parsed.path or "/"
    return urlunsplit((parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.query, ""))


def origin_of(url: str) -> Optional[str]:
    if not is_valid_url(url):
        return None
    parsed = urlsplit(url.strip())
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def parse_seed_urls(text: str) -> List[str]:
    """Split newline-separated form input into seed URLs, dropping blank lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]

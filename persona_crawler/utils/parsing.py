from __future__ import annotations

from urllib.parse import urlparse, urlunparse


def normalize_url(url: str) -> str:
    """
    Normalize URL by removing the fragment; everything else is kept as given.
    """
    if not url:
        return ""
    parts = list(urlparse(url))
    parts[5] = ""  # strip fragment
    return urlunparse(parts)

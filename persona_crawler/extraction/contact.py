"""Contact identifiers and social profile detection."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from .models import LinkRef, SocialLink

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?<!\d)(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}(?!\d)")
ADDRESS_RE = re.compile(
    r"\b\d+\s+[\w\s]+?(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Lane|Ln|Drive|Dr)\b"
    r"[^\n]*?(?:[A-Z]{2}\s+)?\d{5}\b",
    re.I,
)

# platform -> (domains, username path pattern)
SOCIAL_PLATFORMS: Tuple[Tuple[str, Tuple[str, ...], re.Pattern], ...] = (
    ("linkedin", ("linkedin.com",), re.compile(r"^/(?:in|company|pub)/([^/?#]+)")),
    ("twitter", ("twitter.com", "x.com"), re.compile(r"^/(?!intent|share|home|search)([A-Za-z0-9_]{1,15})(?:/|$)")),
    ("facebook", ("facebook.com", "fb.com"), re.compile(r"^/(?!sharer|share|dialog|groups/?$)([A-Za-z0-9.\-]+)(?:/|$)")),
    ("instagram", ("instagram.com",), re.compile(r"^/(?!p/|explore|reel)([A-Za-z0-9_.]+)(?:/|$)")),
    ("github", ("github.com",), re.compile(r"^/(?!topics|orgs|features|marketplace|search)([A-Za-z0-9-]+)(?:/|$)")),
    ("youtube", ("youtube.com",), re.compile(r"^/(?:@|c/|user/|channel/)([^/?#]+)")),
    ("tiktok", ("tiktok.com",), re.compile(r"^/@([^/?#]+)")),
)


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    seen: List[str] = []
    for item in items:
        item = " ".join(item.split())
        if item and item not in seen:
            seen.append(item)
    return tuple(seen)


def extract_emails(text: str) -> Tuple[str, ...]:
    return _unique(EMAIL_RE.findall(text or ""))


def extract_phones(text: str) -> Tuple[str, ...]:
    return _unique(m.strip() for m in PHONE_RE.findall(text or ""))


def extract_addresses(text: str) -> Tuple[str, ...]:
    return _unique(m.group(0) for m in ADDRESS_RE.finditer(text or ""))


def _platform_for(host: str) -> Optional[Tuple[str, re.Pattern]]:
    for platform, domains, pattern in SOCIAL_PLATFORMS:
        if any(host == d or host.endswith("." + d) for d in domains):
            return platform, pattern
    return None


def social_link_for(url: str) -> Optional[SocialLink]:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    found = _platform_for(host)
    if found is None:
        return None
    platform, pattern = found
    match = pattern.match(parsed.path or "/")
    return SocialLink(platform=platform, url=url, username=match.group(1) if match else None)


def extract_social_links(links: Iterable[LinkRef]) -> Tuple[SocialLink, ...]:
    out: List[SocialLink] = []
    seen = set()
    for link in links:
        social = social_link_for(link.url)
        if social is None or social.url in seen:
            continue
        seen.add(social.url)
        out.append(social)
    return tuple(out)

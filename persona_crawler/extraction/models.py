from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class LinkRef:
    text: str
    url: str
    is_external: bool


@dataclass(frozen=True)
class ImageRef:
    src: str
    alt: str = ""
    title: str = ""


@dataclass(frozen=True)
class SocialLink:
    platform: str
    url: str
    username: Optional[str] = None


@dataclass(frozen=True)
class ContactInfo:
    emails: Tuple[str, ...] = ()
    phones: Tuple[str, ...] = ()
    addresses: Tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.emails or self.phones or self.addresses)


@dataclass(frozen=True)
class SearchResult:
    """One organic hit pulled from a search engine results page."""
    title: str
    url: str
    snippet: str
    rank: int


@dataclass(frozen=True)
class PageMetadata:
    description: str = ""
    keywords: Tuple[str, ...] = ()
    author: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""


@dataclass(frozen=True)
class TechnicalInfo:
    load_time: float
    content_length: int
    strategy: str
    javascript_enabled: bool
    final_url: str = ""
    status_code: int = 200


@dataclass(frozen=True)
class QualityInfo:
    has_personal_info: bool
    has_professional_info: bool
    has_social_media: bool
    content_quality: str
    relevance_score: int


@dataclass(frozen=True)
class ExtractedRecord:
    """Structured snapshot of one processed page. Never mutated after creation."""

    url: str
    title: str
    domain: str
    description: str
    text: str
    headings: Dict[str, Tuple[str, ...]]
    paragraphs: Tuple[str, ...]
    links: Tuple[LinkRef, ...]
    images: Tuple[ImageRef, ...]
    social_links: Tuple[SocialLink, ...]
    contact: ContactInfo
    metadata: PageMetadata
    technical: TechnicalInfo
    quality: QualityInfo
    search_results: Tuple[SearchResult, ...] = ()
    user_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # Tuples -> lists for a cleaner JSON export.
        return _listify(data)


def _listify(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _listify(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_listify(v) for v in value]
    return value

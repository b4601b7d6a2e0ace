"""Element scoring heuristics behind generated and adaptive selectors."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ..drivers.base import ElementInfo

# Where to look for candidates when generating a selector for a purpose.
CANDIDATE_SCOPES: Dict[str, str] = {
    "search-results": "div, li, article, section",
    "result-title": "h1, h2, h3, h4, a",
    "result-link": "a[href]",
    "result-description": "p, span, div",
    "result-snippet": "p, span, div",
}

PURPOSE_TOKENS: Dict[str, Tuple[str, ...]] = {
    "search-results": ("result", "search", "serp", "item", "entry", "hit"),
    "result-title": ("title", "heading", "headline", "name"),
    "result-link": ("link", "url", "href", "title"),
    "result-description": ("description", "desc", "snippet", "summary", "abstract", "caption"),
    "result-snippet": ("snippet", "description", "desc", "summary", "abstract", "caption"),
}

BASIC_FALLBACKS: Dict[str, str] = {
    "search-results": "div, article, section",
    "result-title": "h1, h2, h3, a",
    "result-link": "a[href]",
    "result-description": "p, span, div",
    "result-snippet": "p, span, div",
}
DEFAULT_FALLBACK = "div, article, section"

_VOLATILE_RE = re.compile(r"random|dynamic|temp|\d{3,}", re.I)
_IDENT_RE = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")

# Adaptive heuristic. Hand-tuned; changing any weight changes which
# element wins on real pages.
SEMANTIC_TAGS = frozenset({"article", "section", "li", "main"})
SEMANTIC_TAG_BONUS = 10
KEYWORD_RE = re.compile(r"result|title|description", re.I)
KEYWORD_BONUS = 8
LINK_TEXT_BONUS = 10
LINK_TEXT_MIN_CHARS = 20
CHROME_RE = re.compile(
    r"(?:^|[-_])(?:nav|navbar|menu|header|footer|sidebar|ad|ads|advert|banner|cookie|promo)(?:[-_]|$)",
    re.I,
)
CHROME_PENALTY = 15
LONG_TEXT_CHARS = 2000
LONG_TEXT_PENALTY = 10


def is_volatile(token: str) -> bool:
    """Generated-looking id/class: keyword hits, digit runs, or mostly digits."""
    if not token:
        return False
    if _VOLATILE_RE.search(token):
        return True
    digits = sum(ch.isdigit() for ch in token)
    return digits * 3 > len(token)


def _attributes(el: ElementInfo) -> Iterable[Tuple[str, str]]:
    if el.id:
        yield "id", el.id
    for cls in el.classes:
        yield "class", cls


def semantic_score(el: ElementInfo, purpose: str) -> int:
    tokens = PURPOSE_TOKENS.get(purpose, ())
    score = 0
    for kind, value in _attributes(el):
        lowered = value.lower()
        hits = sum(1 for t in tokens if t in lowered)
        score += hits * (3 if kind == "id" else 2)
        if is_volatile(value):
            score -= 2
    return score


def adaptive_score(el: ElementInfo) -> int:
    score = 0
    if el.tag in SEMANTIC_TAGS:
        score += SEMANTIC_TAG_BONUS
    for _, value in _attributes(el):
        score += KEYWORD_BONUS * len(KEYWORD_RE.findall(value))
        if CHROME_RE.search(value):
            score -= CHROME_PENALTY
    if el.has_link and len(el.text) > LINK_TEXT_MIN_CHARS:
        score += LINK_TEXT_BONUS
    if len(el.text) > LONG_TEXT_CHARS:
        score -= LONG_TEXT_PENALTY
    return score


def pick_best(elements: Sequence[ElementInfo], scorer) -> Optional[ElementInfo]:
    """
    Highest positive scorer with text; ties go to the element with less text,
    i.e. the more specific node.
    """
    best: Optional[ElementInfo] = None
    best_key: Optional[Tuple[int, int]] = None
    for el in elements:
        if not el.text:
            continue
        score = scorer(el)
        if score <= 0:
            continue
        key = (score, -len(el.text))
        if best_key is None or key > best_key:
            best, best_key = el, key
    return best


def build_selector(el: ElementInfo, preferred: Sequence[str] = ()) -> str:
    """``#id`` when usable, else up to two stable classes, else the tag."""
    if el.id and _IDENT_RE.match(el.id) and not is_volatile(el.id):
        return f"#{el.id}"
    stable = [c for c in el.classes if _IDENT_RE.match(c) and not is_volatile(c)]
    if preferred:
        stable.sort(key=lambda c: not any(t in c.lower() for t in preferred))
    if stable:
        return "." + ".".join(stable[:2])
    return el.tag


def basic_fallback(purpose: str) -> str:
    return BASIC_FALLBACKS.get(purpose, DEFAULT_FALLBACK)

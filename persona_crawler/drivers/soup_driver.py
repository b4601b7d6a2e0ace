from __future__ import annotations

from typing import Any, List, Optional

from bs4 import BeautifulSoup, Tag

from .base import ElementInfo
from ..errors import DriverError


def element_info(node: Tag) -> ElementInfo:
    classes = node.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    has_link = node.name == "a" or node.find("a", href=True) is not None
    return ElementInfo(
        tag=node.name,
        id=node.get("id") or "",
        classes=tuple(c for c in classes if c),
        text=node.get_text(" ", strip=True),
        has_link=has_link,
    )


class SoupPageDriver:
    """Driver over already-fetched static HTML; no scripts run."""

    javascript_enabled = False

    def __init__(self, html: str, url: str, soup: Optional[BeautifulSoup] = None) -> None:
        self.url = url
        self._html = html
        self.soup = soup or BeautifulSoup(html, "html.parser")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        raise DriverError("static pages cannot evaluate scripts")

    async def query_selector_all(self, selector: str) -> List[ElementInfo]:
        try:
            nodes = self.soup.select(selector)
        except Exception as exc:  # soupsieve raises its own SelectorSyntaxError
            raise DriverError(f"invalid selector {selector!r}: {exc}") from exc
        return [element_info(n) for n in nodes]

    async def wait_for_selector(self, selector: str, timeout: float = 5.0) -> bool:
        # The document is final; there is nothing to wait for.
        try:
            return self.soup.select_one(selector) is not None
        except Exception:
            return False

    async def content(self) -> str:
        return self._html

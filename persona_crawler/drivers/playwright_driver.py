from __future__ import annotations

from typing import Any, List

from playwright.async_api import Error as PlaywrightError, Page

from .base import ElementInfo
from ..errors import DriverError

# Runs inside the page: snapshot matching elements into plain objects.
_SNAPSHOT_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((el) => ({
    tag: el.tagName.toLowerCase(),
    id: el.id || "",
    classes: typeof el.className === "string" ? el.className.split(/\\s+/).filter(Boolean) : [],
    text: (el.textContent || "").replace(/\\s+/g, " ").trim(),
    has_link: el.tagName === "A" || el.querySelector("a[href]") !== null,
}))
"""


class PlaywrightPageDriver:
    """Driver over a live Playwright page."""

    javascript_enabled = True

    def __init__(self, page: Page) -> None:
        self.page = page

    @property
    def url(self) -> str:
        return self.page.url

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(expression, arg)
        except PlaywrightError as exc:
            raise DriverError(str(exc)) from exc

    async def query_selector_all(self, selector: str) -> List[ElementInfo]:
        rows = await self.evaluate(_SNAPSHOT_JS, selector)
        return [
            ElementInfo(
                tag=row.get("tag", ""),
                id=row.get("id", ""),
                classes=tuple(row.get("classes") or ()),
                text=row.get("text", ""),
                has_link=bool(row.get("has_link")),
            )
            for row in rows or []
        ]

    async def wait_for_selector(self, selector: str, timeout: float = 5.0) -> bool:
        try:
            await self.page.wait_for_selector(selector, timeout=timeout * 1000)
            return True
        except PlaywrightError:
            # TimeoutError subclasses Error.
            return False

    async def content(self) -> str:
        return await self.page.content()

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Protocol, Tuple


@dataclass(frozen=True)
class ElementInfo:
    """Lightweight snapshot of a DOM element, identical across drivers."""
    tag: str
    id: str = ""
    classes: Tuple[str, ...] = ()
    text: str = ""
    has_link: bool = False


class PageDriver(Protocol):
    """
    The few page capabilities the resolver and extractor rely on.
    One adapter per rendering backend; callers never inspect the backend.
    """

    url: str
    javascript_enabled: bool

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        """Run a script in the page. Static drivers raise DriverError."""
        ...

    async def query_selector_all(self, selector: str) -> List[ElementInfo]:
        """Snapshot every element matching ``selector``. Raises DriverError on bad selectors."""
        ...

    async def wait_for_selector(self, selector: str, timeout: float = 5.0) -> bool:
        """True once ``selector`` matches, False after ``timeout`` seconds."""
        ...

    async def content(self) -> str:
        """Current page HTML."""
        ...

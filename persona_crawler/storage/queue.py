from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrawlRequest:
    url: str
    strategy_index: int = 1
    purpose: str = "page"
    user_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.url, self.strategy_index)

    def escalate(self, reason: str, next_strategy: Optional[int] = None) -> "CrawlRequest":
        """A fresh request for the next strategy carrying the same user data."""
        user_data = dict(self.user_data)
        user_data["fallback_reason"] = reason
        target = next_strategy if next_strategy is not None else self.strategy_index + 1
        return replace(self, strategy_index=target, user_data=user_data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "strategy": self.strategy_index,
            "purpose": self.purpose,
            "user_data": self.user_data,
        }


class RequestQueue:
    """
    Append-only request queue with one lane per strategy.

    Entries are keyed by ``(url, strategy_index)``; escalation adds a new
    entry rather than touching one a worker holds. Every accepted request
    and every state change is journaled to ``requests.jsonl``.
    """

    def __init__(self, directory: Path | str, lanes: int = 3) -> None:
        self.directory = Path(directory)
        self._lanes: Dict[int, asyncio.Queue[CrawlRequest]] = {
            i: asyncio.Queue() for i in range(1, lanes + 1)
        }
        self._seen: Set[Tuple[str, int]] = set()
        self._pending = 0
        self._journal = self.directory / "requests.jsonl"

    def is_drained(self) -> bool:
        return self._pending == 0

    def add(self, request: CrawlRequest) -> bool:
        if request.strategy_index not in self._lanes:
            raise ValueError(f"no lane for strategy {request.strategy_index}")
        if request.key in self._seen:
            logger.debug("Duplicate request skipped: %s @%s", request.url, request.strategy_index)
            return False
        self._seen.add(request.key)
        self._pending += 1
        self._lanes[request.strategy_index].put_nowait(request)
        self._write({"event": "enqueued", **request.to_dict()})
        return True

    async def get(self, strategy_index: int, timeout: float = 0.1) -> Optional[CrawlRequest]:
        """Next request for a lane, or None when nothing arrives within ``timeout``."""
        try:
            return await asyncio.wait_for(self._lanes[strategy_index].get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def mark_handled(self, request: CrawlRequest, state: str) -> None:
        self._pending -= 1
        self._lanes[request.strategy_index].task_done()
        self._write({"event": state, "url": request.url, "strategy": request.strategy_index})

    def discard_pending(self) -> int:
        """Forget every unhandled request, queued or held by a cancelled worker."""
        dropped = 0
        for lane in self._lanes.values():
            while not lane.empty():
                request = lane.get_nowait()
                lane.task_done()
                self._write({"event": "dropped", "url": request.url, "strategy": request.strategy_index})
                dropped += 1
        self._pending = 0
        return dropped

    def reset(self) -> None:
        if self._pending:
            raise RuntimeError("cannot reset a queue with requests in flight")
        self._seen.clear()

    def _write(self, entry: Dict[str, Any]) -> None:
        try:
            with open(self._journal, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError as exc:
            logger.debug("Queue journal write failed for %s: %r", self._journal, exc)

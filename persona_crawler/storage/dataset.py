from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

from ..extraction.models import ExtractedRecord

logger = logging.getLogger(__name__)


class Dataset:
    """Append-only store of extracted records, mirrored to ``records.jsonl``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._records: List[ExtractedRecord] = []
        self._path = self.directory / "records.jsonl"

    def push(self, record: ExtractedRecord) -> None:
        self._records.append(record)
        try:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
        except OSError as exc:
            logger.debug("Dataset write failed for %s: %r", self._path, exc)

    def unique(self, order: Iterable[str] = ()) -> List[ExtractedRecord]:
        """
        One record per URL (first one wins), sorted by the position of the URL
        in ``order``; URLs not listed keep their arrival order at the end.
        """
        seen = {}
        for record in self._records:
            seen.setdefault(record.url, record)
        rank = {}
        for url in order:
            rank.setdefault(url, len(rank))
        arrival = {url: i for i, url in enumerate(seen)}
        return sorted(
            seen.values(),
            key=lambda r: (rank.get(r.url, len(rank)), arrival[r.url]),
        )

    def drop(self) -> None:
        self._records.clear()
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            logger.debug("Dataset reset failed for %s: %r", self._path, exc)

    def __len__(self) -> int:
        return len(self._records)

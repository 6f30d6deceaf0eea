"""Review history data models.

A history item wraps the core review types with an id and a timestamp. Items
are keyed by creation time, not content: submitting the same files twice
produces two entries.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from filelens_core.errors import MalformedResponseError
from filelens_core.models import BatchCodeReview, CodeFile
from filelens_core.utils.code import is_pasted

_last_id = 0


def _next_id() -> str:
    """Millisecond creation timestamp, bumped if needed so ids never repeat in-process."""
    global _last_id
    now = int(time.time() * 1000)
    _last_id = max(now, _last_id + 1)
    return str(_last_id)


@dataclass
class ReviewHistoryItem:
    """A completed batch review persisted to the history store. Never mutated."""

    id: str
    timestamp: str  # ISO-8601 UTC
    files: list[CodeFile] = field(default_factory=list)
    review: BatchCodeReview = field(default_factory=lambda: BatchCodeReview(overall_summary=""))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "files": [f.to_dict() for f in self.files],
            "review": self.review.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ReviewHistoryItem:
        if not isinstance(d, dict):
            raise MalformedResponseError("History item is not an object")
        item_id, timestamp, files = d.get("id"), d.get("timestamp"), d.get("files")
        if not isinstance(item_id, str) or not isinstance(timestamp, str) or not isinstance(files, list):
            raise MalformedResponseError("History item is missing id, timestamp or files")
        return cls(
            id=item_id,
            timestamp=timestamp,
            files=[CodeFile.from_dict(f) for f in files],
            review=BatchCodeReview.from_dict(d.get("review")),
        )


def new_history_item(files: list[CodeFile], review: BatchCodeReview) -> ReviewHistoryItem:
    """Create an item holding independent copies of the files and review."""
    return ReviewHistoryItem(
        id=_next_id(),
        timestamp=datetime.now(timezone.utc).isoformat(),
        files=copy.deepcopy(list(files)),
        review=copy.deepcopy(review),
    )


def history_title(item: ReviewHistoryItem) -> str:
    """Short label for a history entry, e.g. ``a.py, b.py, +3 more``."""
    files = item.files
    if not files:
        return "Empty Review"
    if len(files) == 1:
        return "Pasted Code" if is_pasted(files[0]) else files[0].name
    first_two = ", ".join(f.name for f in files[:2])
    remaining = len(files) - 2
    if remaining > 0:
        return f"{first_two}, +{remaining} more"
    return first_two

"""No-op store, used when history is switched off (`store: none`).

Using a NoOpStore rather than None lets the CLI always call store.save()
without conditional checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from filelens_store.base import BaseStore
from filelens_store.models import new_history_item

if TYPE_CHECKING:
    from filelens_core.models import BatchCodeReview, CodeFile
    from filelens_store.models import ReviewHistoryItem


class NoOpStore(BaseStore):
    """Persists nothing. save() still returns the item it was given."""

    def load(self) -> list[ReviewHistoryItem]:
        return []

    def save(self, files: list[CodeFile], review: BatchCodeReview) -> list[ReviewHistoryItem]:
        return [new_history_item(files, review)]

    def clear(self) -> None:
        pass  # intentional no-op

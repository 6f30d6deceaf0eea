"""Abstract store interface.

The CLI depends on BaseStore, not on a concrete backend, so history can be
switched off (NoOpStore) or kept encrypted on disk (EncryptedHistoryStore)
without touching CLI code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filelens_core.models import BatchCodeReview, CodeFile
    from filelens_store.models import ReviewHistoryItem


class BaseStore(ABC):
    """Persistence layer for review history.

    History is always returned most-recent-first. No method raises on a
    storage problem: failures are logged and the store degrades to an empty
    or in-memory-only history.
    """

    @abstractmethod
    def load(self) -> list[ReviewHistoryItem]:
        """Return the stored history, or an empty list. Never raises."""

    @abstractmethod
    def save(self, files: list[CodeFile], review: BatchCodeReview) -> list[ReviewHistoryItem]:
        """Record a completed batch review and return the updated history."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all stored history."""

    def get(self, item_id: str) -> ReviewHistoryItem | None:
        return next((item for item in self.load() if item.id == item_id), None)

    def close(self) -> None:
        """Release any resources held by the store.

        Subclasses that hold resources override this.
        Default is a no-op so callers can always call close() safely.
        """

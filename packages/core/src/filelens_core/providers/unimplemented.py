"""Placeholder for a backend that is declared but not built yet.

Selecting it is safe (the registry resolves it) but every capability fails
loudly with BackendNotImplementedError instead of doing nothing.
"""

from __future__ import annotations

from filelens_core.errors import BackendNotImplementedError
from filelens_core.models import BatchCodeReview, CodeFile, CodeReview
from filelens_core.providers.base import BaseReviewer, ChatSession


class UnimplementedReviewer(BaseReviewer):
    CAPABILITIES = frozenset()

    def __init__(self, model: str, label: str | None = None):
        self.model = model
        self.NAME = label or model

    def _error(self) -> BackendNotImplementedError:
        return BackendNotImplementedError(f"{self.NAME} backend is not yet implemented.")

    async def get_code_review(self, code: str, language: str) -> CodeReview:
        raise self._error()

    async def get_batch_summary(self, reviews_by_file: dict[str, CodeReview]) -> str:
        raise self._error()

    async def detect_language(self, code: str) -> str | None:
        raise self._error()

    async def start_chat(self, files: list[CodeFile], batch_review: BatchCodeReview) -> ChatSession | None:
        raise self._error()

    async def _call_api(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        raise self._error()

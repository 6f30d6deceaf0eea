"""Core batch review orchestration."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable

from filelens_core.errors import BackendError, EmptyBatchError, ReviewInProgressError
from filelens_core.models import IDLE_PROGRESS, AiModel, BatchCodeReview, CodeFile, CodeReview, ReviewProgress, Severity
from filelens_core.providers.base import BaseReviewer, Capability
from filelens_core.registry import BackendRegistry
from filelens_core.utils.code import ensure_unique_names

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ReviewProgress], None]


class BatchReviewer:
    """Drives one review run across N files.

    Files are reviewed strictly one at a time in submission order, so there
    is never more than one outstanding review request and a failure is
    attributable to a specific file. The run is all-or-nothing: the first
    failure aborts it and no partial BatchCodeReview is ever returned.

    One instance runs one batch at a time; a second `run()` while the first
    is in flight raises ReviewInProgressError.
    """

    def __init__(self, on_progress: ProgressCallback | None = None):
        self._on_progress = on_progress
        self._running = False
        self.progress: ReviewProgress = IDLE_PROGRESS

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(self, files: list[CodeFile], reviewer: BaseReviewer) -> BatchCodeReview:
        if self._running:
            raise ReviewInProgressError("A batch review is already running.")
        if not files:
            raise EmptyBatchError()
        ensure_unique_names(files)

        self._running = True
        try:
            return await self._run(list(files), reviewer)
        finally:
            self._running = False
            self._emit(IDLE_PROGRESS)

    async def _run(self, files: list[CodeFile], reviewer: BaseReviewer) -> BatchCodeReview:
        total = len(files)
        file_reviews: dict[str, CodeReview] = {}

        for completed, file in enumerate(files):
            self._emit(ReviewProgress(total=total, completed=completed, current_file=file.name))
            logger.info("[%d/%d] Reviewing: %s", completed + 1, total, file.name)
            try:
                file_reviews[file.name] = await reviewer.get_code_review(file.content, file.language)
            except Exception as e:
                logger.error("Review failed for %s; aborting batch: %s", file.name, e)
                raise

        if total == 1:
            overall_summary = file_reviews[files[0].name].overall_summary
        else:
            logger.info("Summarizing %d file reviews", total)
            overall_summary = await reviewer.get_batch_summary(dict(file_reviews))

        return BatchCodeReview(overall_summary=overall_summary, file_reviews=file_reviews)

    def _emit(self, progress: ReviewProgress) -> None:
        self.progress = progress
        if self._on_progress is not None:
            self._on_progress(progress)


async def review_batch(
    files: list[CodeFile],
    model: str | AiModel,
    registry: BackendRegistry,
    on_progress: ProgressCallback | None = None,
) -> BatchCodeReview:
    """Resolve `model` once and run a batch with that backend.

    The backend is fixed at batch start; a later selection change has no
    effect on a run already in progress. UnknownBackendError is raised before
    any file is touched.
    """
    reviewer = registry.resolve(model)
    return await BatchReviewer(on_progress=on_progress).run(files, reviewer)


async def detect_language(reviewer: BaseReviewer, code: str, current: str) -> str:
    """Return the detected language, or `current` when detection gives nothing.

    A backend without the capability, a None result and a backend error all
    keep the current selection.
    """
    if not code.strip() or not reviewer.supports(Capability.LANGUAGE_DETECTION):
        return current
    try:
        detected = await reviewer.detect_language(code)
    except BackendError as e:
        logger.warning("Language detection failed; keeping %r: %s", current, e)
        return current
    return detected or current


def count_severities(batch: BatchCodeReview) -> dict[Severity, int]:
    """Feedback counts per severity across every file, in severity order."""
    counts = Counter(f.severity for review in batch.file_reviews.values() for f in review.feedback)
    return {severity: counts.get(severity, 0) for severity in Severity}

"""Tests for the batch review orchestrator."""

import asyncio

import pytest

from filelens_core.errors import (
    BackendError,
    DuplicateFileError,
    EmptyBatchError,
    MalformedResponseError,
    ReviewInProgressError,
    TransientBackendError,
    UnknownBackendError,
)
from filelens_core.models import (
    IDLE_PROGRESS,
    BatchCodeReview,
    Category,
    CodeFile,
    CodeReview,
    ReviewFeedback,
    ReviewProgress,
    Severity,
)
from filelens_core.providers.base import BaseReviewer, Capability
from filelens_core.registry import BackendRegistry
from filelens_core.reviewer import BatchReviewer, count_severities, detect_language, review_batch


def make_file(name="a.py", content="print(1)", language="python"):
    return CodeFile(name=name, language=language, content=content)


class StubReviewer(BaseReviewer):
    """Reviewer whose per-file results are keyed by file content."""

    def __init__(self, results=None, summary="Both files look fine.", detected=None):
        self.results = results or {}
        self.summary = summary
        self.detected = detected
        self.review_calls = []
        self.summary_calls = []

    async def get_code_review(self, code, language):
        self.review_calls.append(code)
        result = self.results.get(code, CodeReview(f"ok-{code}"))
        if isinstance(result, Exception):
            raise result
        return result

    async def get_batch_summary(self, reviews_by_file):
        self.summary_calls.append(dict(reviews_by_file))
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary

    async def detect_language(self, code):
        if isinstance(self.detected, Exception):
            raise self.detected
        return self.detected

    async def _call_api(self, system_prompt, turns, json_output):
        raise AssertionError("not used")


# ---------------------------------------------------------------------------
# BatchReviewer.run
# ---------------------------------------------------------------------------


class TestBatchReviewer:
    @pytest.mark.asyncio
    async def test_single_file_uses_its_own_summary(self):
        reviewer = StubReviewer()
        batch = await BatchReviewer().run([make_file("a.py", "A")], reviewer)
        assert batch.overall_summary == "ok-A"
        assert list(batch.file_reviews) == ["a.py"]
        assert reviewer.summary_calls == []

    @pytest.mark.asyncio
    async def test_two_files_make_one_summary_call(self):
        reviewer = StubReviewer(results={"print(1)": CodeReview("ok-a"), "print(2)": CodeReview("ok-b")})
        files = [make_file("a.py", "print(1)"), make_file("b.py", "print(2)")]
        batch = await BatchReviewer().run(files, reviewer)

        assert batch == BatchCodeReview(
            overall_summary="Both files look fine.",
            file_reviews={"a.py": CodeReview("ok-a"), "b.py": CodeReview("ok-b")},
        )
        assert reviewer.summary_calls == [{"a.py": CodeReview("ok-a"), "b.py": CodeReview("ok-b")}]

    @pytest.mark.asyncio
    async def test_files_reviewed_in_submission_order(self):
        reviewer = StubReviewer()
        files = [make_file(f"{c}.py", c) for c in "cab"]
        batch = await BatchReviewer().run(files, reviewer)
        assert reviewer.review_calls == ["c", "a", "b"]
        assert list(batch.file_reviews) == ["c.py", "a.py", "b.py"]

    @pytest.mark.asyncio
    async def test_failure_stops_remaining_files(self):
        reviewer = StubReviewer(results={"B": TransientBackendError("429")})
        files = [make_file("a.py", "A"), make_file("b.py", "B"), make_file("c.py", "C")]
        with pytest.raises(TransientBackendError):
            await BatchReviewer().run(files, reviewer)
        assert reviewer.review_calls == ["A", "B"]
        assert reviewer.summary_calls == []

    @pytest.mark.asyncio
    async def test_summary_failure_fails_the_batch(self):
        reviewer = StubReviewer(summary=MalformedResponseError("empty"))
        with pytest.raises(MalformedResponseError):
            await BatchReviewer().run([make_file("a.py", "A"), make_file("b.py", "B")], reviewer)
        assert reviewer.review_calls == ["A", "B"]

    @pytest.mark.asyncio
    async def test_progress_sequence(self):
        events = []
        reviewer = StubReviewer()
        files = [make_file("a.py", "A"), make_file("b.py", "B")]
        runner = BatchReviewer(on_progress=events.append)
        await runner.run(files, reviewer)

        assert events == [
            ReviewProgress(total=2, completed=0, current_file="a.py"),
            ReviewProgress(total=2, completed=1, current_file="b.py"),
            IDLE_PROGRESS,
        ]
        assert runner.progress == IDLE_PROGRESS
        assert not runner.is_running

    @pytest.mark.asyncio
    async def test_progress_reset_after_failure(self):
        events = []
        reviewer = StubReviewer(results={"A": BackendError("bad")})
        runner = BatchReviewer(on_progress=events.append)
        with pytest.raises(BackendError):
            await runner.run([make_file("a.py", "A")], reviewer)
        assert events[-1] == IDLE_PROGRESS
        assert not runner.is_running

    @pytest.mark.asyncio
    async def test_empty_batch_rejected_before_backend_call(self):
        reviewer = StubReviewer()
        with pytest.raises(EmptyBatchError):
            await BatchReviewer().run([], reviewer)
        assert reviewer.review_calls == []

    @pytest.mark.asyncio
    async def test_duplicate_names_rejected_before_backend_call(self):
        reviewer = StubReviewer()
        with pytest.raises(DuplicateFileError):
            await BatchReviewer().run([make_file("a.py", "A"), make_file("a.py", "B")], reviewer)
        assert reviewer.review_calls == []

    @pytest.mark.asyncio
    async def test_second_run_while_running_rejected(self):
        gate = asyncio.Event()

        class SlowReviewer(StubReviewer):
            async def get_code_review(self, code, language):
                await gate.wait()
                return await super().get_code_review(code, language)

        runner = BatchReviewer()
        reviewer = SlowReviewer()
        first = asyncio.create_task(runner.run([make_file("a.py", "A")], reviewer))
        await asyncio.sleep(0)
        assert runner.is_running

        with pytest.raises(ReviewInProgressError):
            await runner.run([make_file("b.py", "B")], reviewer)

        gate.set()
        batch = await first
        assert list(batch.file_reviews) == ["a.py"]
        assert reviewer.review_calls == ["A"]

    @pytest.mark.asyncio
    async def test_input_list_not_mutated(self):
        files = [make_file("a.py", "A"), make_file("b.py", "B")]
        await BatchReviewer().run(files, StubReviewer())
        assert [f.name for f in files] == ["a.py", "b.py"]


# ---------------------------------------------------------------------------
# review_batch
# ---------------------------------------------------------------------------


class TestReviewBatch:
    @pytest.mark.asyncio
    async def test_resolves_backend_once(self):
        resolved = []
        reviewer = StubReviewer()

        def factory():
            resolved.append(1)
            return reviewer

        registry = BackendRegistry()
        registry.register("stub", factory)
        batch = await review_batch([make_file("a.py", "A"), make_file("b.py", "B")], "stub", registry)
        assert batch.overall_summary == "Both files look fine."
        assert resolved == [1]

    @pytest.mark.asyncio
    async def test_unknown_model_fails_before_any_review(self):
        with pytest.raises(UnknownBackendError):
            await review_batch([make_file()], "llama", BackendRegistry())

    @pytest.mark.asyncio
    async def test_unknown_model_fails_the_same_way_for_any_files(self):
        messages = []
        for files in ([make_file("a.py")], [make_file("x.go", language="go"), make_file("y.go", language="go")]):
            with pytest.raises(UnknownBackendError) as exc_info:
                await review_batch(files, "llama", BackendRegistry())
            messages.append(str(exc_info.value))
        assert messages == ["AI service for model 'llama' not found."] * 2


# ---------------------------------------------------------------------------
# detect_language
# ---------------------------------------------------------------------------


class TestDetectLanguage:
    @pytest.mark.asyncio
    async def test_uses_detected_language(self):
        assert await detect_language(StubReviewer(detected="python"), "def f(): pass", "javascript") == "python"

    @pytest.mark.asyncio
    async def test_keeps_current_when_unsure(self):
        assert await detect_language(StubReviewer(detected=None), "???", "go") == "go"

    @pytest.mark.asyncio
    async def test_keeps_current_on_backend_error(self):
        reviewer = StubReviewer(detected=TransientBackendError("down"))
        assert await detect_language(reviewer, "x = 1", "rust") == "rust"

    @pytest.mark.asyncio
    async def test_keeps_current_without_capability(self):
        reviewer = StubReviewer(detected="python")
        reviewer.CAPABILITIES = frozenset({Capability.REVIEW})
        assert await detect_language(reviewer, "x = 1", "rust") == "rust"

    @pytest.mark.asyncio
    async def test_blank_code_not_sent(self):
        reviewer = StubReviewer(detected=AssertionError("should not be called"))
        assert await detect_language(reviewer, "   \n", "java") == "java"


def test_count_severities():
    batch = BatchCodeReview(
        overall_summary="x",
        file_reviews={
            "a.py": CodeReview(
                "a",
                [
                    ReviewFeedback(Category.BUG, Severity.HIGH, 1, "one"),
                    ReviewFeedback(Category.STYLE, Severity.LOW, 2, "two"),
                ],
            ),
            "b.py": CodeReview("b", [ReviewFeedback(Category.SECURITY, Severity.HIGH, 0, "three")]),
        },
    )
    counts = count_severities(batch)
    assert list(counts) == list(Severity)
    assert counts[Severity.HIGH] == 2
    assert counts[Severity.LOW] == 1
    assert counts[Severity.CRITICAL] == 0

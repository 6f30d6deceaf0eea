"""Base reviewer implementing the Template Method pattern.

All providers share the same algorithm for every capability:
    get_code_review() / get_batch_summary() / detect_language() / ChatSession.send()
        → _build_*_prompt()
        → _call_with_retry() → _call_api()   ← only this differs per provider
        → _parse()

Subclasses implement two things only:
  - __init__: validate credentials and store the SDK or HTTP client
  - _call_api: make one raw API call over a list of turns and return the text

Prompt construction, JSON parsing, retry of transient failures and error
translation live here so every provider behaves the same way.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from enum import Enum

from filelens_core.errors import BackendError, MalformedResponseError, TransientBackendError
from filelens_core.models import BatchCodeReview, Category, CodeFile, CodeReview, Severity
from filelens_core.utils.code import SUPPORTED_LANGUAGES

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096

RATE_LIMIT_MESSAGE = "API rate limit exceeded. Please wait a moment and try again."


class Capability(str, Enum):
    REVIEW = "review"
    BATCH_SUMMARY = "batch_summary"
    LANGUAGE_DETECTION = "language_detection"
    CHAT = "chat"


def user_turn(content: str) -> dict:
    return {"role": "user", "content": content}


def model_turn(content: str) -> dict:
    return {"role": "model", "content": content}


class ChatSession:
    """Handle to one follow-up conversation with a backend.

    `session_id` is an opaque token. The session keeps the provider-side turn
    list; a user turn is only committed together with the reply it produced,
    so a failed send leaves the context unchanged.
    """

    def __init__(self, reviewer: BaseReviewer, system_prompt: str):
        self.session_id = uuid.uuid4().hex
        self._reviewer = reviewer
        self._system_prompt = system_prompt
        self._turns: list[dict] = []

    @property
    def turns(self) -> list[dict]:
        return list(self._turns)

    async def send(self, message: str) -> str:
        turns = self._turns + [user_turn(message)]
        reply = await self._reviewer._call_with_retry(self._system_prompt, turns, json_output=False)
        reply = reply.strip()
        if not reply:
            raise MalformedResponseError(f"{self._reviewer.NAME} returned an empty chat reply.")
        self._turns = turns + [model_turn(reply)]
        return reply


class BaseReviewer(ABC):
    NAME: str = "AI"
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    CAPABILITIES: frozenset[Capability] = frozenset(Capability)

    def supports(self, capability: Capability) -> bool:
        return capability in self.CAPABILITIES

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def get_code_review(self, code: str, language: str) -> CodeReview:
        """Review one buffer. Raises BackendError (or a subclass) on failure."""
        raw = await self._call_with_retry(
            self._build_review_system_prompt(),
            [user_turn(self._build_review_prompt(code, language))],
            json_output=True,
        )
        return CodeReview.from_dict(self._parse(raw))

    async def get_batch_summary(self, reviews_by_file: dict[str, CodeReview]) -> str:
        """Synthesize one narrative across several per-file reviews."""
        raw = await self._call_with_retry(
            self._build_review_system_prompt(),
            [user_turn(self._build_summary_prompt(reviews_by_file))],
            json_output=False,
        )
        summary = raw.strip()
        if not summary:
            raise MalformedResponseError(f"{self.NAME} returned an empty batch summary.")
        return summary

    async def detect_language(self, code: str) -> str | None:
        """Best-effort language detection; None when unsure or unsupported."""
        raw = await self._call_with_retry(
            "You identify programming languages.",
            [user_turn(self._build_detection_prompt(code))],
            json_output=True,
        )
        data = self._parse(raw)
        language = data.get("language") if isinstance(data, dict) else None
        if isinstance(language, str) and language.lower() in SUPPORTED_LANGUAGES:
            return language.lower()
        return None

    async def start_chat(self, files: list[CodeFile], batch_review: BatchCodeReview) -> ChatSession | None:
        """Open a conversation seeded with the files and their review.

        Returns None when the session cannot be established; callers treat
        that as "chat unavailable", not as a review failure.
        """
        try:
            return self._open_chat(self._build_chat_system_prompt(files, batch_review))
        except Exception as e:
            logger.warning("%s: could not start chat session: %s", self.__class__.__name__, e)
            return None

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _call_api(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        """Make a single API call and return the raw text response.

        `turns` alternate user/model, starting and ending with a user turn.
        Raise TransientBackendError for rate limits and network failures,
        AuthorizationError for rejected credentials and BackendError for
        anything else the provider reports.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _open_chat(self, system_prompt: str) -> ChatSession:
        return ChatSession(self, system_prompt)

    async def _call_with_retry(self, system_prompt: str, turns: list[dict], json_output: bool) -> str:
        """Retry transient failures up to MAX_RETRIES times with exponential backoff.

        Non-transient backend errors propagate on the first attempt. Anything
        that is not a BackendError is wrapped into one.
        """
        for attempt in range(self.MAX_RETRIES):
            try:
                return await self._call_api(system_prompt, turns, json_output)
            except TransientBackendError as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
            except BackendError:
                raise
            except Exception as e:
                logger.error("%s API call failed: %s", self.__class__.__name__, e)
                raise BackendError(f"Failed to get a response from {self.NAME}: {e}") from e
        raise BackendError(f"{self.NAME} was not called: MAX_RETRIES is {self.MAX_RETRIES}.")

    def _build_review_system_prompt(self) -> str:
        return (
            "You are an expert senior software engineer conducting a thorough, constructive code review. "
            "Be specific, actionable and concise."
        )

    def _build_review_prompt(self, code: str, language: str) -> str:
        categories = "', '".join(c.value for c in Category)
        severities = "', '".join(s.value for s in Severity)
        return f"""Conduct a thorough code review of the following {language} code.
Provide a high-level summary and specific, actionable feedback.
Categorize each piece of feedback and reference the line number.

Code to review:
```{language}
{code}
```

### Output Format:
Respond with **only** a valid JSON object:

{{
  "overallSummary": "<brief high-level summary of code quality, key strengths and areas for improvement>",
  "feedback": [
    {{
      "category": "<one of '{categories}'>",
      "severity": "<one of '{severities}'>",
      "line": <line number the feedback pertains to (integer); 0 for a general comment>,
      "description": "<clear and concise explanation of the issue>",
      "suggestion": "<optional corrected snippet or fix, markdown allowed>"
    }}
  ]
}}

If there are no issues, return an empty "feedback" list.
Do not return any text outside the JSON object."""

    def _build_summary_prompt(self, reviews_by_file: dict[str, CodeReview]) -> str:
        sections = []
        for name, review in reviews_by_file.items():
            issues = "\n".join(
                f"- [{f.severity.value}] {f.category.value} (line {f.line}): {f.description}" for f in review.feedback
            )
            sections.append(f"### {name}\nSummary: {review.overall_summary}\n{issues or '- No issues reported.'}")
        body = "\n\n".join(sections)
        return f"""Below are code reviews for {len(reviews_by_file)} files submitted together.
Write a concise holistic summary of the whole submission: overall quality,
recurring themes across files, and the most important fixes to make first.
Respond with plain prose (markdown allowed), no JSON.

{body}"""

    def _build_detection_prompt(self, code: str) -> str:
        languages = ", ".join(SUPPORTED_LANGUAGES)
        return f"""Analyze the following code snippet and identify its programming language.
Answer with one of: {languages}.
Respond with **only** a JSON object: {{"language": "<language or null>"}}

```
{code[:4000]}
```"""

    def _build_chat_system_prompt(self, files: list[CodeFile], batch_review: BatchCodeReview) -> str:
        file_sections = "\n\n".join(f"### {f.name} ({f.language})\n```{f.language}\n{f.content}\n```" for f in files)
        review_json = json.dumps(batch_review.to_dict(), indent=2)
        return f"""You are an expert senior software engineer answering follow-up questions about a code
review you already performed. Ground every answer in the files and the review below.
Keep answers focused; use markdown and fenced code blocks for code.

## Reviewed files
{file_sections}

## Review
{review_json}"""

    def _parse(self, raw: str):
        """Parse a JSON response, stripping the outer markdown fence if present."""
        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            logger.warning(
                "%s: failed to parse response as JSON: %s",
                self.__class__.__name__,
                raw[:200],
            )
            raise MalformedResponseError(
                f"Failed to get code review from {self.NAME}. The model returned an invalid response."
            )


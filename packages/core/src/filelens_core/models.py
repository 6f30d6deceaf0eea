"""Review data model.

Every type round-trips through a JSON-compatible dict with camelCase keys
(`overallSummary`, `fileReviews`). The same shape is what backends are asked
to produce and what the history store encrypts, so `from_dict` doubles as the
schema check for both: anything that does not fit raises
MalformedResponseError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from filelens_core.errors import MalformedResponseError


class Category(str, Enum):
    BUG = "Bug"
    PERFORMANCE = "Performance"
    STYLE = "Style"
    BEST_PRACTICE = "Best Practice"
    SECURITY = "Security"
    MAINTAINABILITY = "Maintainability"


class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    INFO = "Info"


class AiModel(str, Enum):
    GEMINI = "gemini"
    CLAUDE = "claude"
    CHATGPT = "chatgpt"


class ChatRole(str, Enum):
    USER = "user"
    MODEL = "model"


DEFAULT_MODEL = AiModel.GEMINI

# Records written before severities existed carry no severity key.
_DEFAULT_SEVERITY = Severity.MEDIUM


def _require(data: Any, key: str, kind: type) -> Any:
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected an object, got {type(data).__name__}")
    if key not in data:
        raise MalformedResponseError(f"Missing required field {key!r}")
    value = data[key]
    # bool is an int subclass; True is not a line number.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedResponseError(f"Field {key!r} has the wrong type")
    return value


def _enum(enum_cls: type[Enum], value: Any, key: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise MalformedResponseError(f"Unknown {key} {value!r}")


@dataclass(frozen=True)
class CodeFile:
    """A source buffer submitted for review. `name` is unique within a run."""

    name: str
    language: str
    content: str

    def to_dict(self) -> dict:
        return {"name": self.name, "language": self.language, "content": self.content}

    @classmethod
    def from_dict(cls, d: dict) -> CodeFile:
        return cls(
            name=_require(d, "name", str),
            language=_require(d, "language", str),
            content=_require(d, "content", str),
        )


@dataclass
class ReviewFeedback:
    category: Category
    severity: Severity
    line: int  # 0 = applies to the whole file
    description: str
    suggestion: str | None = None

    def __post_init__(self):
        if self.line < 0:
            raise ValueError(f"line must be >= 0, got {self.line}")

    def to_dict(self) -> dict:
        d = {
            "category": self.category.value,
            "severity": self.severity.value,
            "line": self.line,
            "description": self.description,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ReviewFeedback:
        line = _require(d, "line", int)
        if line < 0:
            raise MalformedResponseError(f"Negative line number {line}")
        suggestion = d.get("suggestion")
        if suggestion is not None and not isinstance(suggestion, str):
            raise MalformedResponseError("Field 'suggestion' has the wrong type")
        return cls(
            category=_enum(Category, _require(d, "category", str), "category"),
            severity=_enum(Severity, d.get("severity", _DEFAULT_SEVERITY.value), "severity"),
            line=line,
            description=_require(d, "description", str),
            suggestion=suggestion or None,
        )


@dataclass
class CodeReview:
    overall_summary: str
    feedback: list[ReviewFeedback] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overallSummary": self.overall_summary,
            "feedback": [f.to_dict() for f in self.feedback],
        }

    @classmethod
    def from_dict(cls, d: dict) -> CodeReview:
        return cls(
            overall_summary=_require(d, "overallSummary", str),
            feedback=[ReviewFeedback.from_dict(f) for f in _require(d, "feedback", list)],
        )


@dataclass
class BatchCodeReview:
    """Aggregate result of one review run, keyed by file name."""

    overall_summary: str
    file_reviews: dict[str, CodeReview] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "overallSummary": self.overall_summary,
            "fileReviews": {name: review.to_dict() for name, review in self.file_reviews.items()},
        }

    @classmethod
    def from_dict(cls, d: dict) -> BatchCodeReview:
        reviews = _require(d, "fileReviews", dict)
        return cls(
            overall_summary=_require(d, "overallSummary", str),
            file_reviews={name: CodeReview.from_dict(r) for name, r in reviews.items()},
        )


@dataclass
class ChatMessage:
    role: ChatRole
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ReviewProgress:
    """Determinate progress of a batch run.

    `completed` counts finished files only, never the one in flight.
    """

    total: int = 0
    completed: int = 0
    current_file: str = ""


IDLE_PROGRESS = ReviewProgress()

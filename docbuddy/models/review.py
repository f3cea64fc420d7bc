"""Request-scoped values flowing through the suggestion pipeline."""

from enum import Enum

from pydantic import BaseModel


class LineKind(str, Enum):
    HEADER = "header"
    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"
    NO_NEWLINE = "no_newline"


class GenerationMode(str, Enum):
    """How candidate lines are sent to the model."""

    PER_LINE = "per_line"
    BATCHED = "batched"


class Tone(str, Enum):
    NEUTRAL = "neutral"
    SARCASTIC = "sarcastic"


class Hunk(BaseModel):
    """Ranges declared by a ``@@ -a,b +c,d @@`` header."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int


class PatchLine(BaseModel):
    """One line of a file patch with its new-file position.

    ``text`` has the leading diff marker removed for added, removed and
    context lines. Header lines keep their full text. ``in_hunk`` is False
    for lines outside a valid hunk, whose position 1 is only a fallback.
    """

    index: int
    kind: LineKind
    position: int
    text: str
    replaces_deleted: bool = False
    in_hunk: bool = False


class CandidateLine(BaseModel):
    """An added line eligible for documentation review."""

    patch_line_index: int
    position: int
    text: str


class Suggestion(BaseModel):
    """A proposed replacement for one line or a run of consecutive lines.

    ``start_position`` is only set when the suggestion spans several lines;
    ``position`` is always the last line of the span.
    """

    position: int
    original_text: str
    improved_text: str
    reason: str | None = None
    start_position: int | None = None

    @property
    def is_multiline(self) -> bool:
        return self.start_position is not None and self.start_position != self.position


class FileRef(BaseModel):
    """Where a review comment for one file of a pull request goes."""

    owner: str
    repo: str
    pr_number: int
    commit_id: str
    path: str


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class Outcome(BaseModel):
    """Result of one pipeline step that is allowed to fail without raising."""

    status: OutcomeStatus
    reason: str | None = None

    @classmethod
    def success(cls, reason: str | None = None) -> "Outcome":
        return cls(status=OutcomeStatus.SUCCESS, reason=reason)

    @classmethod
    def skipped(cls, reason: str) -> "Outcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "Outcome":
        return cls(status=OutcomeStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

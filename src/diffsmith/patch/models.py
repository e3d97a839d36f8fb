from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class DiffError(ValueError):
    """Any problem detected while parsing or applying a patch."""


class ParseError(DiffError):
    """Malformed diff text. Raised before any file is touched."""

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        self.message = message
        self.line_number = line_number
        if line_number is not None:
            super().__init__(f"Line {line_number}: {message}")
        else:
            super().__init__(message)


class ApplyPatchError(DiffError):
    """A well-formed patch that cannot be applied to the current file state."""


class OperationAbortedError(DiffError):
    """The abort signal was set before the write happened."""


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Operation":
        # Anything that is not an explicit create/delete is an update.
        if raw == cls.CREATE.value:
            return cls.CREATE
        if raw == cls.DELETE.value:
            return cls.DELETE
        return cls.UPDATE


@dataclass
class DiffHunk:
    # Anchor text; hierarchical anchors are joined with "\n" (outermost first).
    change_context: Optional[str] = None
    # 1-based hints from unified headers or "@@ line N" markers.
    old_start_line: Optional[int] = None
    new_start_line: Optional[int] = None
    has_context_lines: bool = False
    old_lines: List[str] = field(default_factory=list)
    new_lines: List[str] = field(default_factory=list)
    is_end_of_file: bool = False

    @property
    def contexts(self) -> List[str]:
        if not self.change_context:
            return []
        return self.change_context.split("\n")


@dataclass(frozen=True)
class PatchInput:
    path: str
    op: Operation = Operation.UPDATE
    rename: Optional[str] = None
    diff: Optional[str] = None


@dataclass
class ExactMatch:
    start: int
    actual_text: str
    start_line: int


@dataclass
class FuzzyMatch:
    start: int
    actual_text: str
    start_line: int
    similarity: float


@dataclass
class AmbiguousMatch:
    occurrences: int
    previews: List[str] = field(default_factory=list)


@dataclass
class NoMatch:
    # Closest candidate below the threshold (or rejected because fuzzy is off).
    closest: Optional[FuzzyMatch] = None
    # Windows at or above the threshold; non-zero only when fuzzy is disabled.
    fuzzy_matches: int = 0


MatchOutcome = Union[ExactMatch, FuzzyMatch, AmbiguousMatch, NoMatch]


@dataclass
class SequenceSearchResult:
    index: Optional[int] = None
    confidence: float = 0.0
    match_count: int = 0

    @property
    def found(self) -> bool:
        return self.index is not None


@dataclass
class ContextLineResult:
    index: Optional[int] = None
    confidence: float = 0.0
    match_count: int = 0

    @property
    def found(self) -> bool:
        return self.index is not None


@dataclass
class FileChange:
    type: Operation
    old_path: str
    new_path: Optional[str] = None
    old_content: Optional[str] = None
    new_content: Optional[str] = None


@dataclass
class ApplyPatchResult:
    change: FileChange
    warnings: List[str] = field(default_factory=list)


@dataclass
class DiffResult:
    diff: str
    first_changed_line: Optional[int] = None


@dataclass
class ReplaceResult:
    content: str
    count: int


class FileDiagnostics(BaseModel):
    server: str
    messages: List[str] = Field(default_factory=list)
    summary: str = ""
    errored: bool = False


class EditMatchError(DiffError):
    """
    Replacement text could not be located uniquely. The message carries the
    closest candidate, or previews of each occurrence, so the caller can
    correct the edit.
    """

    def __init__(
        self,
        path: str,
        search_text: str,
        closest: Optional[FuzzyMatch] = None,
        *,
        allow_fuzzy: bool = True,
        threshold: float = 0.95,
        fuzzy_matches: int = 0,
        occurrences: int = 0,
        previews: Optional[List[str]] = None,
    ) -> None:
        self.path = path
        self.search_text = search_text
        self.closest = closest
        self.allow_fuzzy = allow_fuzzy
        self.threshold = threshold
        self.fuzzy_matches = fuzzy_matches
        self.occurrences = occurrences
        self.previews = previews or []
        super().__init__(self._format())

    def _format(self) -> str:
        if self.occurrences > 1:
            more = ""
            if self.occurrences > len(self.previews):
                more = f" (showing first {len(self.previews)} of {self.occurrences})"
            previews = "\n\n".join(self.previews)
            return (
                f"Found {self.occurrences} occurrences in {self.path}{more}:\n\n"
                f"{previews}\n\nAdd more context lines to disambiguate."
            )
        lines = [f"Could not find the text to replace in {self.path}."]
        if self.closest is not None:
            pct = round(self.closest.similarity * 100)
            lines.append("")
            lines.append(
                f"Closest match ({pct}% similar, line {self.closest.start_line}):"
            )
            lines.append(self.closest.actual_text)
        if not self.allow_fuzzy and self.fuzzy_matches > 0:
            lines.append("")
            lines.append(
                f"{self.fuzzy_matches} whitespace-tolerant match(es) exist but fuzzy matching is disabled."
            )
        elif self.allow_fuzzy and self.closest is not None:
            lines.append("")
            lines.append(
                f"Similarity is below the required threshold ({round(self.threshold * 100)}%)."
            )
        lines.append("")
        lines.append("Re-read the file and copy the text exactly, including whitespace.")
        return "\n".join(lines)

"""Shared dataclasses describing completion requests, suggestions, and outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SnippetType(str, Enum):
    """Kinds of context snippets forwarded with a prompt."""

    CODE = "code"
    CLIPBOARD = "clipboard"


class TextAcceptanceAction(str, Enum):
    """Terminal classification of a displayed suggestion."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class CodeSnippet:
    """Code excerpt from another location in the workspace."""

    filepath: str
    content: str

    def to_payload(self) -> dict[str, Any]:
        return {"filepath": self.filepath, "content": self.content, "type": SnippetType.CODE.value}


@dataclass(frozen=True, slots=True)
class ClipboardSnippet:
    """Clipboard contents captured at request time."""

    content: str
    copied_at: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {"content": self.content, "copiedAt": self.copied_at, "type": SnippetType.CLIPBOARD.value}


@dataclass(frozen=True, slots=True)
class PromptOptions:
    """Text around the cursor plus optional context snippets."""

    prefix: str
    suffix: str
    project_path: str = ""
    file_project_path: str = ""
    import_content: str = ""
    recently_edited_ranges: tuple[CodeSnippet, ...] = ()
    recently_visited_ranges: tuple[CodeSnippet, ...] = ()
    clipboard_content: tuple[ClipboardSnippet, ...] = ()
    recently_opened_files: tuple[CodeSnippet, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Wire representation used in the request body."""

        return {
            "prefix": self.prefix,
            "suffix": self.suffix,
            "project_path": self.project_path,
            "file_project_path": self.file_project_path,
            "import_content": self.import_content,
            "recently_edited_ranges": [snippet.to_payload() for snippet in self.recently_edited_ranges],
            "recently_visited_ranges": [snippet.to_payload() for snippet in self.recently_visited_ranges],
            "clipboard_content": [snippet.to_payload() for snippet in self.clipboard_content],
            "recently_opened_files": [snippet.to_payload() for snippet in self.recently_opened_files],
        }


@dataclass(frozen=True, slots=True)
class HideScoreContext:
    """Signals the server uses to decide whether a suggestion should be hidden."""

    is_whitespace_after_cursor: bool = True
    document_length: int = 0
    prompt_end_pos: int = 0
    previous_label: int = 0
    previous_label_timestamp: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "is_whitespace_after_cursor": self.is_whitespace_after_cursor,
            "document_length": self.document_length,
            "prompt_end_pos": self.prompt_end_pos,
            "previous_label": self.previous_label,
            "previous_label_timestamp": self.previous_label_timestamp,
        }


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    """One completion opportunity at a cursor position."""

    completion_id: str
    language_id: str
    prompt_options: PromptOptions
    filepath: str
    previous_completion_id: str = ""
    hide_score: HideScoreContext = field(default_factory=HideScoreContext)

    @property
    def prefix(self) -> str:
        return self.prompt_options.prefix

    @property
    def suffix(self) -> str:
        return self.prompt_options.suffix


@dataclass(frozen=True, slots=True)
class Suggestion:
    """Text insertable at the cursor when the buffer looked like ``prefix|suffix``."""

    text: str
    prefix: str
    suffix: str
    completion_id: str


@dataclass(frozen=True, slots=True)
class SuggestionMatch:
    """Result of a history lookup."""

    text: str
    completion_id: str


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of a successful completion call."""

    time: int
    completion: str
    completion_id: str
    cache_hit: bool
    filepath: str
    num_lines: int
    language: str


@dataclass(frozen=True, slots=True)
class DisplayedCompletion:
    """Most recently displayed suggestion."""

    completion_id: str
    displayed_at: float


@dataclass(frozen=True, slots=True)
class CompletedCompletion:
    """Most recent accepted or rejected suggestion."""

    outcome: Outcome
    action: TextAcceptanceAction
    completed_at: datetime

    @property
    def completed_at_ms(self) -> int:
        return int(self.completed_at.timestamp() * 1000)


__all__ = [
    "ClipboardSnippet",
    "CodeSnippet",
    "CompletedCompletion",
    "CompletionRequest",
    "DisplayedCompletion",
    "HideScoreContext",
    "Outcome",
    "PromptOptions",
    "SnippetType",
    "Suggestion",
    "SuggestionMatch",
    "TextAcceptanceAction",
]

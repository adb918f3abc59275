"""Helpers that turn an editor buffer into a completion request."""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import PurePath
from typing import Callable, Sequence

from .models import (
    ClipboardSnippet,
    CodeSnippet,
    CompletedCompletion,
    CompletionRequest,
    HideScoreContext,
    PromptOptions,
    TextAcceptanceAction,
)

LOG = logging.getLogger(__name__)

LastCompletedProvider = Callable[[], CompletedCompletion | None]

_C_STYLE_COMMENTS = ("//", "/*")


def extract_prefix_suffix(text: str, offset: int) -> tuple[str, str]:
    """Split ``text`` at the cursor offset."""

    offset = max(0, min(offset, len(text)))
    return text[:offset], text[offset:]


def is_whitespace_after_cursor(text: str, offset: int) -> bool:
    """Whether the rest of the cursor's line is blank."""

    end = text.find("\n", offset)
    rest = text[offset:] if end == -1 else text[offset:end]
    return rest.strip() == ""


def get_dependency_imports(filepath: str, content: str) -> list[str]:
    """Collect the import block at the top of a source file."""

    if not filepath or not content:
        return []
    extension = PurePath(filepath).suffix.lower().lstrip(".")
    lines = content.split("\n")
    if extension == "py":
        return _leading_lines(lines, ("#",), lambda line: line.startswith(("import ", "from ")))
    if extension == "java":
        return _leading_lines(
            lines,
            _C_STYLE_COMMENTS,
            lambda line: line.startswith("import ") and line.endswith(";"),
        )
    if extension == "go":
        return _go_imports(lines)
    if extension in {"js", "ts"}:
        return _leading_lines(
            lines,
            _C_STYLE_COMMENTS,
            lambda line: line.startswith("import ")
            or (line.startswith("const ") and " = require(" in line),
        )
    if extension in {"c", "cpp"}:
        return _leading_lines(lines, _C_STYLE_COMMENTS, lambda line: line.startswith("#include "))
    if extension == "rs":
        return _leading_lines(lines, _C_STYLE_COMMENTS, lambda line: line.startswith("use "))
    LOG.debug("Unsupported file extension for import scan: %s", extension or "<none>")
    return []


def _leading_lines(
    lines: Sequence[str],
    comment_markers: tuple[str, ...],
    is_import: Callable[[str], bool],
) -> list[str]:
    imports: list[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(comment_markers):
            continue
        if not is_import(line):
            break
        imports.append(line)
    return imports


def _go_imports(lines: Sequence[str]) -> list[str]:
    imports: list[str] = []
    in_block = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith(_C_STYLE_COMMENTS):
            continue
        if line.startswith("import "):
            if "(" in line:
                in_block = True
            else:
                imports.append(line)
        elif in_block:
            if line.endswith(")"):
                in_block = False
            imports.append(line)
        else:
            break
    return imports


def relative_path(filepath: str, project_path: str) -> str:
    if not project_path:
        return filepath
    try:
        relative = os.path.relpath(filepath, project_path)
    except ValueError:
        return filepath
    if relative.startswith(".."):
        return filepath
    return PurePath(relative).as_posix()


def new_completion_id() -> str:
    """Time-ordered unique id for a completion opportunity."""

    if hasattr(uuid, "uuid7"):
        return str(uuid.uuid7())
    return str(uuid.uuid1())


class RequestBuilder:
    """Builds requests seeded with the last resolved suggestion."""

    def __init__(
        self,
        last_completed: LastCompletedProvider,
        *,
        project_path: str = "",
        id_factory: Callable[[], str] = new_completion_id,
    ) -> None:
        self._last_completed = last_completed
        self._project_path = project_path
        self._id_factory = id_factory

    def build(
        self,
        buffer: str,
        cursor: int,
        *,
        language_id: str,
        filepath: str,
        recently_edited: Sequence[CodeSnippet] = (),
        recently_visited: Sequence[CodeSnippet] = (),
        clipboard: Sequence[ClipboardSnippet] = (),
        recently_opened: Sequence[CodeSnippet] = (),
    ) -> CompletionRequest:
        prefix, suffix = extract_prefix_suffix(buffer, cursor)
        relative = relative_path(filepath, self._project_path)
        imports = get_dependency_imports(relative, buffer)
        last = self._last_completed()
        hide_score = HideScoreContext(
            is_whitespace_after_cursor=is_whitespace_after_cursor(buffer, len(prefix)),
            document_length=len(buffer),
            prompt_end_pos=len(prefix),
            previous_label=1 if last is not None and last.action is TextAcceptanceAction.ACCEPTED else 0,
            previous_label_timestamp=last.completed_at_ms if last is not None else 0,
        )
        return CompletionRequest(
            completion_id=self._id_factory(),
            language_id=language_id,
            prompt_options=PromptOptions(
                prefix=prefix,
                suffix=suffix,
                project_path=self._project_path,
                file_project_path=relative,
                import_content="\n".join(imports),
                recently_edited_ranges=tuple(recently_edited),
                recently_visited_ranges=tuple(recently_visited),
                clipboard_content=tuple(clipboard),
                recently_opened_files=tuple(recently_opened),
            ),
            filepath=relative,
            previous_completion_id=last.outcome.completion_id if last is not None else "",
            hide_score=hide_score,
        )


__all__ = [
    "RequestBuilder",
    "extract_prefix_suffix",
    "get_dependency_imports",
    "is_whitespace_after_cursor",
    "new_completion_id",
    "relative_path",
]

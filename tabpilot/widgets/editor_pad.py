"""Editor surface that shows inline suggestions from the completion session."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import Static, TextArea

from tabpilot.engine import CancellationToken
from tabpilot.session import CompletionSession, InlineSuggestion

INDENT = "    "


class EditorPad(Container):
    """Text area plus a ghost line previewing the current suggestion."""

    DEFAULT_CSS = """
    EditorPad {
        layout: vertical;
        border: round $primary 40%;
        padding: 1 2;
        height: 1fr;
        background: $surface;
    }

    EditorPad .panel-title {
        text-style: bold;
    }

    EditorPad TextArea {
        height: 1fr;
    }

    #ghost-suggestion {
        height: auto;
        min-height: 1;
        color: $text-muted;
        border-top: solid $surface-darken-2;
    }

    EditorPad:focus-within {
        border: round $primary;
    }
    """

    BINDINGS = Container.BINDINGS + [
        Binding("tab", "accept_suggestion", "Accept suggestion", priority=True),
        Binding("escape", "dismiss_suggestion", "Dismiss", show=False),
    ]

    def __init__(
        self,
        session: CompletionSession,
        *,
        language_id: str = "python",
        filepath: str = "untitled.py",
        initial_text: str = "",
    ) -> None:
        super().__init__(id="editor-pad")
        self._session = session
        self._language_id = language_id
        self._filepath = filepath
        self._initial_text = initial_text
        self._editor: TextArea | None = None
        self._ghost: Static | None = None
        self._token: CancellationToken | None = None
        self._suggestion: InlineSuggestion | None = None

    @property
    def suggestion(self) -> InlineSuggestion | None:
        """Suggestion currently previewed, if any."""

        return self._suggestion

    def compose(self) -> ComposeResult:
        yield Static(f"{self._filepath} · {self._language_id}", classes="panel-title")
        yield TextArea(self._initial_text, id="editor-input")
        yield Static("", id="ghost-suggestion")

    async def on_mount(self) -> None:
        self._editor = self.query_one("#editor-input", TextArea)
        self._ghost = self.query_one("#ghost-suggestion", Static)

    def on_unmount(self) -> None:
        self._cancel_pending()
        self._session.cancel()

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        editor = event.text_area
        self.request_suggestion(editor.text, cursor_offset(editor.text, editor.cursor_location))

    def request_suggestion(self, buffer: str, cursor: int) -> None:
        """Cancel the previous request and start a new one for ``buffer``."""

        self._cancel_pending()
        self._show(None)
        token = CancellationToken()
        self._token = token
        self.run_worker(self._complete(buffer, cursor, token), group="completion", exit_on_error=False)

    def action_accept_suggestion(self) -> None:
        editor = self._editor
        if editor is None:
            return
        suggestion = self._suggestion
        if suggestion is None:
            editor.insert(INDENT)
            return
        self._show(None)
        self._session.accept(suggestion.completion_id)
        editor.insert(suggestion.text)

    def action_dismiss_suggestion(self) -> None:
        self._cancel_pending()
        self._show(None)

    async def _complete(self, buffer: str, cursor: int, token: CancellationToken) -> None:
        suggestion = await self._session.provide(
            buffer,
            cursor,
            language_id=self._language_id,
            filepath=self._filepath,
            token=token,
        )
        if token is not self._token or token.is_cancelled():
            return
        self._show(suggestion)

    def _cancel_pending(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def _show(self, suggestion: InlineSuggestion | None) -> None:
        self._suggestion = suggestion
        if not self._ghost:
            return
        if suggestion is None:
            self._ghost.update("")
            return
        preview = suggestion.text.replace("\n", " ⏎ ")
        self._ghost.update(f"⇥ {preview}")


def cursor_offset(text: str, location: tuple[int, int]) -> int:
    """Convert a (row, column) cursor location into a buffer offset."""

    row, column = location
    lines = text.split("\n")
    offset = sum(len(line) + 1 for line in lines[:row])
    return min(offset + column, len(text))


__all__ = ["EditorPad", "cursor_offset"]

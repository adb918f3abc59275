"""Status bar widget that mirrors completion session state."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from tabpilot.session import CompletionSession, CompletionState, CompletionStatus

_LABELS: dict[CompletionStatus, str] = {
    CompletionStatus.IDLE: "Ready",
    CompletionStatus.DISABLED: "Disabled",
    CompletionStatus.LOADING: "Thinking…",
    CompletionStatus.COMPLETE: "Suggestion ready",
    CompletionStatus.NO_SUGGESTION: "No suggestion",
    CompletionStatus.FAILED: "Failed",
}


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, session: CompletionSession) -> None:
        super().__init__("", id="status-bar")
        self._session = session
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._session.subscribe(self._handle_state)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_state(self, state: CompletionState) -> None:
        self.update(render_status(state))


def render_status(state: CompletionState) -> str:
    """Single-line summary of a session state."""

    parts = [f"Completion: {_LABELS[state.status]}"]
    if state.status is CompletionStatus.FAILED:
        if state.message:
            parts.append(state.message)
        if state.hint:
            parts.append(state.hint)
    elif state.completion_id:
        parts.append(f"id {state.completion_id}")
    parts.append(state.updated_at.astimezone().strftime("%H:%M:%S"))
    return " | ".join(parts)


__all__ = ["StatusBar", "render_status"]

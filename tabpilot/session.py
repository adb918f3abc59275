"""Editor-facing completion session wiring requests, display, and status."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from .client import CompletionClient, CompletionClientError, CompletionTimeoutError
from .config import CompletionSettings
from .context import RequestBuilder, new_completion_id
from .engine import CancellationToken, CompletionOrchestrator, NullTelemetrySink, TelemetrySink
from .models import ClipboardSnippet, CodeSnippet, Outcome

API_ERROR = "TabCompletion_ApiError"
MIN_SELECTED_TYPED_LENGTH = 4

LOG = logging.getLogger(__name__)


class CompletionStatus(str, Enum):
    """Coarse status surfaced to the host UI."""

    IDLE = "idle"
    DISABLED = "disabled"
    LOADING = "loading"
    COMPLETE = "complete"
    NO_SUGGESTION = "no_suggestion"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CompletionState:
    """Snapshot of the session's latest status change."""

    status: CompletionStatus
    updated_at: datetime
    message: str = ""
    hint: str = ""
    completion_id: str | None = None


@dataclass(frozen=True, slots=True)
class SelectedCompletion:
    """Item highlighted in the editor's own completion popup."""

    text: str
    typed_text: str


@dataclass(frozen=True, slots=True)
class InlineSuggestion:
    """Suggestion the host should render at the cursor."""

    text: str
    completion_id: str
    outcome: Outcome


StateListener = Callable[[CompletionState], None]

_STATUS_MESSAGES: dict[int, tuple[str, str]] = {
    400: ("Bad request", "The completion request was rejected; check the client version."),
    401: ("Unauthorized", "Sign in again to refresh your credentials."),
    403: ("Forbidden", "Your account is not allowed to use code completion."),
    404: ("Not found", "The completion service endpoint is unavailable."),
    429: ("Too many requests", "Completions are rate limited; slow down or retry shortly."),
    500: ("Server error", "The completion service failed; retry later."),
    502: ("Bad gateway", "The completion service is unreachable through the gateway."),
    503: ("Service unavailable", "The completion service is temporarily unavailable."),
    504: ("Gateway timeout", "The completion service took too long to answer."),
}


def describe_failure(error: BaseException) -> tuple[str, str]:
    """Return a short error label and a remediation hint for ``error``."""

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and status_code in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status_code]
    if isinstance(error, CompletionTimeoutError):
        return ("Timed out", "The completion service did not answer in time.")
    if isinstance(error, CompletionClientError):
        return ("Request failed", str(error) or "The completion service could not be reached.")
    return ("Unknown error", "Check the logs for details.")


class CompletionSession:
    """Host-facing facade for one editor session."""

    def __init__(
        self,
        client: CompletionClient,
        *,
        settings: CompletionSettings | None = None,
        telemetry: TelemetrySink | None = None,
        project_path: str = "",
        id_factory: Callable[[], str] = new_completion_id,
    ) -> None:
        self._settings = settings or CompletionSettings()
        self._telemetry = telemetry or NullTelemetrySink()
        self._orchestrator = CompletionOrchestrator(
            client,
            settings=self._settings,
            telemetry=self._telemetry,
            on_error=self._handle_error,
        )
        self._builder = RequestBuilder(
            lambda: self._orchestrator.last_completed,
            project_path=project_path,
            id_factory=id_factory,
        )
        self._listeners: set[StateListener] = set()
        self._failures = 0
        self._generation = 0
        self._state = CompletionState(
            status=CompletionStatus.IDLE if self._settings.enabled else CompletionStatus.DISABLED,
            updated_at=datetime.now(tz=timezone.utc),
        )

    @property
    def settings(self) -> CompletionSettings:
        return self._settings

    @property
    def state(self) -> CompletionState:
        """Current status snapshot."""

        return self._state

    @property
    def orchestrator(self) -> CompletionOrchestrator:
        return self._orchestrator

    async def provide(
        self,
        buffer: str,
        cursor: int,
        *,
        language_id: str,
        filepath: str,
        token: CancellationToken | None = None,
        manual: bool = False,
        selected: SelectedCompletion | None = None,
        recently_edited: Sequence[CodeSnippet] = (),
        recently_visited: Sequence[CodeSnippet] = (),
        clipboard: Sequence[ClipboardSnippet] = (),
        recently_opened: Sequence[CodeSnippet] = (),
    ) -> InlineSuggestion | None:
        """Request a suggestion for the cursor position, if one should be shown."""

        if not self._settings.enabled:
            self._update(CompletionStatus.DISABLED)
            return None
        if selected is not None:
            if len(selected.typed_text) < MIN_SELECTED_TYPED_LENGTH:
                return None
            if not selected.text.startswith(selected.typed_text):
                return None

        self._generation += 1
        generation = self._generation
        self._update(CompletionStatus.LOADING)
        if not manual and not self._settings.is_language_enabled(language_id):
            self._update(CompletionStatus.NO_SUGGESTION)
            return None

        request = self._builder.build(
            buffer,
            cursor,
            language_id=language_id,
            filepath=filepath,
            recently_edited=recently_edited,
            recently_visited=recently_visited,
            clipboard=clipboard,
            recently_opened=recently_opened,
        )
        failures = self._failures
        outcome = await self._orchestrator.complete(request, token)
        if (
            (token is not None and token.is_cancelled())
            or outcome is None
            or not outcome.completion
            or (selected is not None and not outcome.completion.startswith(selected.text))
        ):
            self._settle(generation, failures)
            return None

        self._orchestrator.mark_displayed(outcome.completion_id, outcome)
        self._update(CompletionStatus.COMPLETE, completion_id=outcome.completion_id)
        return InlineSuggestion(
            text=outcome.completion,
            completion_id=outcome.completion_id,
            outcome=outcome,
        )

    def accept(self, completion_id: str) -> Outcome | None:
        """Report that the user inserted the suggestion."""

        return self._orchestrator.accept(completion_id)

    def cancel(self) -> None:
        self._orchestrator.cancel()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Subscribe to status updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self._state)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    async def aclose(self) -> None:
        await self._orchestrator.aclose()

    def _settle(self, generation: int, failures: int) -> None:
        # A newer call owns the status; a failure from this call stays visible.
        if generation != self._generation or self._failures != failures:
            return
        self._update(CompletionStatus.NO_SUGGESTION)

    def _handle_error(self, error: BaseException) -> None:
        self._failures += 1
        LOG.info("Completion error: %s", error)
        try:
            self._telemetry.capture_error(API_ERROR)
        except Exception:
            LOG.exception("Telemetry sink failed")
        label, hint = describe_failure(error)
        self._update(CompletionStatus.FAILED, message=label, hint=hint)

    def _update(
        self,
        status: CompletionStatus,
        *,
        message: str = "",
        hint: str = "",
        completion_id: str | None = None,
    ) -> None:
        self._state = CompletionState(
            status=status,
            updated_at=datetime.now(tz=timezone.utc),
            message=message,
            hint=hint,
            completion_id=completion_id,
        )
        for listener in tuple(self._listeners):
            try:
                listener(self._state)
            except Exception:
                LOG.exception("Completion state listener failed", extra={"status": status.value})


__all__ = [
    "API_ERROR",
    "CompletionSession",
    "CompletionState",
    "CompletionStatus",
    "InlineSuggestion",
    "SelectedCompletion",
    "describe_failure",
]

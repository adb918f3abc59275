"""Completion orchestrator sequencing debounce, cache, network, and outcomes."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from tabpilot.config import CompletionSettings
from tabpilot.models import CompletedCompletion, CompletionRequest, Outcome, SuggestionMatch

from .cancellation import CancellationToken
from .debounce import Debouncer
from .history import SuggestionHistory
from .outcomes import OutcomeLogger
from .telemetry import TelemetrySink

if TYPE_CHECKING:
    from tabpilot.client import CompletionClient

ErrorHandler = Callable[[BaseException], None]

LOG = logging.getLogger(__name__)


class CompletionOrchestrator:
    """Facade that turns one completion opportunity into at most one outcome.

    One instance owns the suggestion history and outcome state for an editor
    session. ``complete`` never raises for per-request failures: cancellation
    returns ``None`` silently and fetch errors are handed to ``on_error``.
    """

    def __init__(
        self,
        client: CompletionClient,
        *,
        settings: CompletionSettings | None = None,
        telemetry: TelemetrySink | None = None,
        on_error: ErrorHandler | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or CompletionSettings()
        self._client = client
        self._on_error = on_error
        self._clock = clock
        self._debouncer = Debouncer()
        self._history = SuggestionHistory(self._settings.history_capacity)
        self._outcomes = OutcomeLogger(
            telemetry,
            rejection_window=self._settings.rejection_window,
            continuation_window=self._settings.continuation_window,
            clock=clock,
        )

    @property
    def settings(self) -> CompletionSettings:
        return self._settings

    @property
    def history(self) -> SuggestionHistory:
        return self._history

    @property
    def outcomes(self) -> OutcomeLogger:
        return self._outcomes

    @property
    def last_completed(self) -> CompletedCompletion | None:
        """Most recent accepted or rejected suggestion, if any."""

        return self._outcomes.last_completed

    async def complete(
        self,
        request: CompletionRequest,
        token: CancellationToken | None = None,
    ) -> Outcome | None:
        """Produce an outcome for ``request`` or ``None`` when skipped, cancelled, or failed."""

        self._outcomes.cancel()
        caller_token = token
        token = self._outcomes.create_token(request.completion_id)
        unlink = caller_token.on_cancel(token.cancel) if caller_token is not None else None

        try:
            if token.is_cancelled():
                return None
            if await self._debouncer.wait_or_skip(self._settings.debounce_delay, token):
                LOG.debug("Completion %s debounced", request.completion_id)
                return None
            if token.is_cancelled():
                return None

            started = self._clock()
            cache_hit = False
            match = self._history.find(request.prefix, request.suffix)
            if match is not None:
                cache_hit = True
                LOG.debug("Completion %s served from history", request.completion_id)
            else:
                if token.is_cancelled():
                    return None
                try:
                    match = await self._fetch(request, token)
                except Exception as exc:
                    self._report_error(exc)
                    return None
                if match is None:
                    return None

            if token.is_cancelled():
                return None
            return Outcome(
                time=int((self._clock() - started) * 1000),
                completion=match.text,
                completion_id=match.completion_id,
                cache_hit=cache_hit,
                filepath=request.filepath,
                num_lines=match.text.count("\n") + 1,
                language=request.language_id,
            )
        finally:
            if unlink is not None:
                unlink()
            self._outcomes.discard_token(request.completion_id)

    def cancel(self) -> None:
        """Abort all in-flight requests."""

        self._outcomes.cancel()
        self._debouncer.cancel()

    def accept(self, completion_id: str) -> Outcome | None:
        return self._outcomes.accept(completion_id)

    def mark_displayed(self, completion_id: str, outcome: Outcome) -> None:
        self._outcomes.mark_displayed(completion_id, outcome)

    async def aclose(self) -> None:
        """Release timers and the network client."""

        self.cancel()
        self._outcomes.close()
        await self._client.aclose()

    async def _fetch(self, request: CompletionRequest, token: CancellationToken) -> SuggestionMatch | None:
        LOG.debug("Fetching completion %s", request.completion_id)
        suggestion = await self._client.fetch(request, token)
        if suggestion is None or token.is_cancelled():
            return None
        if not suggestion.text:
            LOG.debug("Completion %s came back empty", request.completion_id)
            return None
        self._history.insert(suggestion)
        return self._history.find(request.prefix, request.suffix)

    def _report_error(self, error: Exception) -> None:
        if self._on_error is None:
            LOG.warning("Completion request failed: %s", error)
            return
        try:
            self._on_error(error)
        except Exception:
            LOG.exception("Completion error handler failed")


__all__ = ["CompletionOrchestrator", "ErrorHandler"]

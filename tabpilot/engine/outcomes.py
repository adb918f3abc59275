"""Tracks in-flight requests and classifies displayed suggestions.

Every completion id moves through ``fetching -> displayed -> accepted |
rejected``. A displayed suggestion is pending until it is accepted, its
rejection window elapses, or a newer display is judged to continue it, in
which case it is dropped without telemetry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from tabpilot.models import CompletedCompletion, DisplayedCompletion, Outcome, TextAcceptanceAction

from .cancellation import CancellationToken
from .telemetry import CompletionTelemetry, NullTelemetrySink, TelemetrySink

DEFAULT_REJECTION_WINDOW = 10.0
DEFAULT_CONTINUATION_WINDOW = 0.5

LOG = logging.getLogger(__name__)


class OutcomeLogger:
    """Owns cancellation tokens, rejection timers, and the last display/result pointers."""

    def __init__(
        self,
        telemetry: TelemetrySink | None = None,
        *,
        rejection_window: float = DEFAULT_REJECTION_WINDOW,
        continuation_window: float = DEFAULT_CONTINUATION_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._telemetry = telemetry or NullTelemetrySink()
        self._rejection_window = rejection_window
        self._continuation_window = continuation_window
        self._clock = clock
        self._tokens: dict[str, CancellationToken] = {}
        self._rejection_timers: dict[str, asyncio.TimerHandle] = {}
        self._outcomes: dict[str, Outcome] = {}
        self._last_displayed: DisplayedCompletion | None = None
        self._last_completed: CompletedCompletion | None = None

    @property
    def last_completed(self) -> CompletedCompletion | None:
        """Most recent accepted or rejected suggestion."""

        return self._last_completed

    @property
    def pending_ids(self) -> tuple[str, ...]:
        """Ids of displayed suggestions still awaiting resolution."""

        return tuple(self._outcomes)

    @property
    def in_flight_ids(self) -> tuple[str, ...]:
        return tuple(self._tokens)

    def create_token(self, completion_id: str) -> CancellationToken:
        token = CancellationToken()
        self._tokens[completion_id] = token
        return token

    def discard_token(self, completion_id: str) -> None:
        self._tokens.pop(completion_id, None)

    def cancel(self) -> None:
        """Abort every in-flight request; displayed suggestions are untouched."""

        tokens = tuple(self._tokens.values())
        self._tokens.clear()
        for token in tokens:
            token.cancel()

    def cancel_rejection(self, completion_id: str) -> None:
        """Drop a pending suggestion without emitting telemetry."""

        timer = self._rejection_timers.pop(completion_id, None)
        if timer is not None:
            timer.cancel()
        self._outcomes.pop(completion_id, None)

    def accept(self, completion_id: str) -> Outcome | None:
        """Resolve a pending suggestion as accepted.

        Returns ``None`` when nothing is pending for the id (already
        rejected, superseded, or never displayed).
        """

        timer = self._rejection_timers.pop(completion_id, None)
        if timer is not None:
            timer.cancel()
        outcome = self._outcomes.pop(completion_id, None)
        if outcome is None:
            return None
        self._record(outcome, TextAcceptanceAction.ACCEPTED)
        return outcome

    def mark_displayed(self, completion_id: str, outcome: Outcome) -> None:
        """Start the rejection window for a suggestion the editor is now showing."""

        loop = asyncio.get_running_loop()
        existing = self._rejection_timers.pop(completion_id, None)
        if existing is not None:
            existing.cancel()
        self._outcomes[completion_id] = outcome
        self._rejection_timers[completion_id] = loop.call_later(
            self._rejection_window, self._reject, completion_id
        )

        now = self._clock()
        previous = self._last_displayed
        if (
            previous is not None
            and previous.completion_id != completion_id
            and previous.completion_id in self._rejection_timers
        ):
            previous_outcome = self._outcomes.get(previous.completion_id)
            if previous_outcome is not None and _is_continuation(
                previous_outcome.completion, outcome.completion
            ):
                LOG.debug("Suggestion %s continues %s", completion_id, previous.completion_id)
                self.cancel_rejection(previous.completion_id)
            elif now - previous.displayed_at < self._continuation_window:
                LOG.debug("Suggestion %s replaced %s quickly", completion_id, previous.completion_id)
                self.cancel_rejection(previous.completion_id)

        self._last_displayed = DisplayedCompletion(completion_id=completion_id, displayed_at=now)

    def close(self) -> None:
        """Cancel every timer and token without emitting telemetry."""

        self.cancel()
        for timer in self._rejection_timers.values():
            timer.cancel()
        self._rejection_timers.clear()
        self._outcomes.clear()

    def _reject(self, completion_id: str) -> None:
        self._rejection_timers.pop(completion_id, None)
        outcome = self._outcomes.pop(completion_id, None)
        if outcome is not None:
            self._record(outcome, TextAcceptanceAction.REJECTED)

    def _record(self, outcome: Outcome, action: TextAcceptanceAction) -> None:
        try:
            self._telemetry.capture_completion(CompletionTelemetry.from_outcome(outcome, action))
        except Exception:
            LOG.exception("Telemetry sink failed", extra={"completion_id": outcome.completion_id})
        self._last_completed = CompletedCompletion(
            outcome=outcome,
            action=action,
            completed_at=datetime.now(tz=timezone.utc),
        )


def _is_continuation(previous: str, current: str) -> bool:
    first = previous.split("\n", 1)[0]
    second = current.split("\n", 1)[0]
    return (
        first.startswith(second)
        or second.startswith(first)
        or first.endswith(second)
        or second.endswith(first)
    )


__all__ = ["DEFAULT_CONTINUATION_WINDOW", "DEFAULT_REJECTION_WINDOW", "OutcomeLogger"]

"""Tests for the outcome logger state machine."""

from __future__ import annotations

import asyncio

import pytest

from tabpilot.engine import CompletionTelemetry, OutcomeLogger
from tabpilot.models import Outcome, TextAcceptanceAction

WINDOW = 0.05


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _RecordingSink:
    def __init__(self) -> None:
        self.records: list[CompletionTelemetry] = []
        self.errors: list[str] = []

    def capture_completion(self, record: CompletionTelemetry) -> None:
        self.records.append(record)

    def capture_error(self, name: str) -> None:
        self.errors.append(name)

    def actions(self) -> list[TextAcceptanceAction]:
        return [record.action for record in self.records]


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _outcome(completion: str, completion_id: str = "cmpl_1") -> Outcome:
    return Outcome(
        time=42,
        completion=completion,
        completion_id=completion_id,
        cache_hit=False,
        filepath="src/app.py",
        num_lines=completion.count("\n") + 1,
        language="python",
    )


@pytest.mark.anyio
async def test_accept_clears_rejection_timer() -> None:
    sink = _RecordingSink()
    logger = OutcomeLogger(sink, rejection_window=WINDOW)

    logger.mark_displayed("cmpl_1", _outcome("return 1"))
    accepted = logger.accept("cmpl_1")
    await asyncio.sleep(WINDOW * 3)

    assert accepted is not None and accepted.completion == "return 1"
    assert sink.actions() == [TextAcceptanceAction.ACCEPTED]
    assert sink.records[0] == CompletionTelemetry(
        language="python", num_lines=1, action=TextAcceptanceAction.ACCEPTED, elapsed_ms=42
    )
    assert logger.pending_ids == ()
    assert logger.last_completed is not None
    assert logger.last_completed.action is TextAcceptanceAction.ACCEPTED


@pytest.mark.anyio
async def test_timeout_emits_single_rejection() -> None:
    sink = _RecordingSink()
    logger = OutcomeLogger(sink, rejection_window=WINDOW)

    logger.mark_displayed("cmpl_1", _outcome("return 1"))
    await asyncio.sleep(WINDOW * 3)

    assert sink.actions() == [TextAcceptanceAction.REJECTED]
    assert logger.pending_ids == ()
    assert logger.last_completed is not None
    assert logger.last_completed.action is TextAcceptanceAction.REJECTED
    assert logger.accept("cmpl_1") is None
    assert sink.actions() == [TextAcceptanceAction.REJECTED]


@pytest.mark.anyio
async def test_continuation_suppresses_previous_rejection() -> None:
    sink = _RecordingSink()
    logger = OutcomeLogger(sink, rejection_window=WINDOW)

    logger.mark_displayed("id1", _outcome("foo", "id1"))
    logger.mark_displayed("id2", _outcome("foobar", "id2"))

    assert logger.pending_ids == ("id2",)
    await asyncio.sleep(WINDOW * 3)
    assert sink.actions() == [TextAcceptanceAction.REJECTED]
    assert logger.last_completed is not None
    assert logger.last_completed.outcome.completion_id == "id2"


@pytest.mark.anyio
async def test_text_relation_uses_first_line_only() -> None:
    clock = _Clock()
    logger = OutcomeLogger(rejection_window=10.0, clock=clock)

    logger.mark_displayed("id1", _outcome("bar(x)\n    pass", "id1"))
    clock.now += 5
    logger.mark_displayed("id2", _outcome("bar(x)\n    return x", "id2"))

    assert logger.pending_ids == ("id2",)
    logger.close()


@pytest.mark.anyio
async def test_quick_replacement_suppresses_unrelated_previous() -> None:
    clock = _Clock()
    logger = OutcomeLogger(rejection_window=10.0, clock=clock)

    logger.mark_displayed("id1", _outcome("alpha", "id1"))
    clock.now += 0.2
    logger.mark_displayed("id2", _outcome("omega", "id2"))

    assert logger.pending_ids == ("id2",)
    logger.close()


@pytest.mark.anyio
async def test_slow_unrelated_display_keeps_both_pending() -> None:
    sink = _RecordingSink()
    clock = _Clock()
    logger = OutcomeLogger(sink, rejection_window=WINDOW, clock=clock)

    logger.mark_displayed("id1", _outcome("alpha", "id1"))
    clock.now += 2
    logger.mark_displayed("id2", _outcome("omega", "id2"))

    assert set(logger.pending_ids) == {"id1", "id2"}
    await asyncio.sleep(WINDOW * 3)
    assert sink.actions() == [TextAcceptanceAction.REJECTED, TextAcceptanceAction.REJECTED]


@pytest.mark.anyio
async def test_redisplay_of_same_id_keeps_one_timer() -> None:
    sink = _RecordingSink()
    logger = OutcomeLogger(sink, rejection_window=WINDOW)

    logger.mark_displayed("id1", _outcome("foo", "id1"))
    logger.mark_displayed("id1", _outcome("oo", "id1"))

    assert logger.pending_ids == ("id1",)
    await asyncio.sleep(WINDOW * 3)
    assert sink.actions() == [TextAcceptanceAction.REJECTED]
    assert sink.records[0].elapsed_ms == 42


@pytest.mark.anyio
async def test_cancel_aborts_tokens_but_keeps_displayed() -> None:
    logger = OutcomeLogger(rejection_window=10.0)
    token = logger.create_token("fetching")
    logger.mark_displayed("shown", _outcome("foo", "shown"))

    logger.cancel()

    assert token.is_cancelled() is True
    assert logger.in_flight_ids == ()
    assert logger.pending_ids == ("shown",)
    logger.close()
    assert logger.pending_ids == ()


@pytest.mark.anyio
async def test_accept_unknown_id_is_noop() -> None:
    sink = _RecordingSink()
    logger = OutcomeLogger(sink)

    assert logger.accept("missing") is None
    assert sink.records == []
    assert logger.last_completed is None


@pytest.mark.anyio
async def test_failing_sink_does_not_break_accept() -> None:
    class _BrokenSink(_RecordingSink):
        def capture_completion(self, record: CompletionTelemetry) -> None:
            raise RuntimeError("pipeline down")

    logger = OutcomeLogger(_BrokenSink(), rejection_window=10.0)
    logger.mark_displayed("id1", _outcome("foo", "id1"))

    outcome = logger.accept("id1")

    assert outcome is not None
    assert logger.last_completed is not None
    assert logger.last_completed.outcome is outcome


@pytest.mark.anyio
async def test_discard_token_removes_bookkeeping() -> None:
    logger = OutcomeLogger()
    logger.create_token("a")

    logger.discard_token("a")
    logger.discard_token("a")

    assert logger.in_flight_ids == ()

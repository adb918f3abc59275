"""Telemetry sinks receiving accept/reject records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from tabpilot.models import Outcome, TextAcceptanceAction

LOG = logging.getLogger("tabpilot.telemetry")


@dataclass(frozen=True, slots=True)
class CompletionTelemetry:
    """Record emitted once per resolved suggestion."""

    language: str
    num_lines: int
    action: TextAcceptanceAction
    elapsed_ms: int

    @classmethod
    def from_outcome(cls, outcome: Outcome, action: TextAcceptanceAction) -> CompletionTelemetry:
        return cls(
            language=outcome.language,
            num_lines=outcome.num_lines,
            action=action,
            elapsed_ms=outcome.time,
        )


@runtime_checkable
class TelemetrySink(Protocol):
    """Fire-and-forget consumer of completion telemetry."""

    def capture_completion(self, record: CompletionTelemetry) -> None:
        """Record an accepted or rejected suggestion."""

    def capture_error(self, name: str) -> None:
        """Record a named error occurrence."""


class NullTelemetrySink:
    """Sink that drops everything (telemetry disabled)."""

    def capture_completion(self, record: CompletionTelemetry) -> None:
        return None

    def capture_error(self, name: str) -> None:
        return None


class LoggingTelemetrySink:
    """Sink that writes records to the ``tabpilot.telemetry`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def capture_completion(self, record: CompletionTelemetry) -> None:
        LOG.log(
            self._level,
            "completion %s language=%s lines=%d elapsed_ms=%d",
            record.action.value,
            record.language,
            record.num_lines,
            record.elapsed_ms,
        )

    def capture_error(self, name: str) -> None:
        LOG.log(self._level, "completion error %s", name)


__all__ = [
    "CompletionTelemetry",
    "LoggingTelemetrySink",
    "NullTelemetrySink",
    "TelemetrySink",
]

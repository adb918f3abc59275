"""Completion request lifecycle: debounce, history reuse, cancellation, outcomes."""

from __future__ import annotations

from .cancellation import CancellationToken, run_until_cancelled
from .debounce import Debouncer
from .history import SuggestionHistory, find_matching_suggestion
from .outcomes import OutcomeLogger
from .service import CompletionOrchestrator, ErrorHandler
from .telemetry import CompletionTelemetry, LoggingTelemetrySink, NullTelemetrySink, TelemetrySink

__all__ = [
    "CancellationToken",
    "CompletionOrchestrator",
    "CompletionTelemetry",
    "Debouncer",
    "ErrorHandler",
    "LoggingTelemetrySink",
    "NullTelemetrySink",
    "OutcomeLogger",
    "SuggestionHistory",
    "TelemetrySink",
    "find_matching_suggestion",
    "run_until_cancelled",
]

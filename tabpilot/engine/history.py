"""Bounded history of fetched suggestions with partial-typing reuse."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from tabpilot.models import Suggestion, SuggestionMatch

DEFAULT_CAPACITY = 20


def find_matching_suggestion(
    prefix: str,
    suffix: str,
    history: Sequence[Suggestion],
) -> SuggestionMatch | None:
    """Return the newest suggestion that still fits ``prefix|suffix``.

    An entry fits exactly when its prefix and suffix are unchanged. It also
    fits when the user has typed further into it: the suffix is unchanged,
    the current prefix extends the stored one, and the extra text is the
    start of the stored suggestion. In that case only the untyped tail is
    returned.
    """

    for candidate in reversed(history):
        if prefix == candidate.prefix and suffix == candidate.suffix:
            return SuggestionMatch(text=candidate.text, completion_id=candidate.completion_id)

        if candidate.text and suffix == candidate.suffix and prefix.startswith(candidate.prefix):
            typed = prefix[len(candidate.prefix):]
            if candidate.text.startswith(typed):
                return SuggestionMatch(
                    text=candidate.text[len(typed):],
                    completion_id=candidate.completion_id,
                )
    return None


class SuggestionHistory:
    """Insertion-ordered, deduplicated FIFO of suggestions."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1.")
        self._capacity = capacity
        self._entries: list[Suggestion] = []

    def find(self, prefix: str, suffix: str) -> SuggestionMatch | None:
        return find_matching_suggestion(prefix, suffix, self._entries)

    def insert(self, suggestion: Suggestion) -> bool:
        """Append ``suggestion`` unless an identical one exists; returns whether it was added."""

        for existing in self._entries:
            if (
                existing.text == suggestion.text
                and existing.prefix == suggestion.prefix
                and existing.suffix == suggestion.suffix
            ):
                return False
        self._entries.append(suggestion)
        if len(self._entries) > self._capacity:
            del self._entries[0]
        return True

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Suggestion]:
        return iter(tuple(self._entries))


__all__ = ["DEFAULT_CAPACITY", "SuggestionHistory", "find_matching_suggestion"]

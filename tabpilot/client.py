"""Network clients that fetch a single completion for a request."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol, Sequence

import httpx

from .config import CompletionSettings
from .engine.cancellation import CancellationToken, run_until_cancelled
from .models import CompletionRequest, Suggestion

LOG = logging.getLogger(__name__)

REPLACEMENT_CHAR = "�"


class CompletionClientError(RuntimeError):
    """Raised when the completion service fails or answers with garbage."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CompletionTimeoutError(CompletionClientError):
    """Raised when the completion service does not answer in time."""


class CompletionClient(Protocol):
    """Interface implemented by completion transports."""

    async def fetch(self, request: CompletionRequest, token: CancellationToken) -> Suggestion | None:
        """Fetch a suggestion; ``None`` means the token cancelled the call."""

    async def aclose(self) -> None: ...


class HttpCompletionClient:
    """Posts completion requests to the completion service over HTTP."""

    def __init__(
        self,
        settings: CompletionSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.server_url,
            timeout=httpx.Timeout(settings.network_timeout),
        )

    async def fetch(self, request: CompletionRequest, token: CancellationToken) -> Suggestion | None:
        try:
            data = await run_until_cancelled(
                self._post(request),
                token,
                timeout=self._settings.network_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise CompletionTimeoutError(
                f"Completion request timed out after {self._settings.network_timeout_ms} ms"
            ) from exc
        if data is None:
            return None
        return Suggestion(
            text=extract_completion_text(data),
            prefix=request.prefix,
            suffix=request.suffix,
            completion_id=extract_completion_id(data),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def build_payload(self, request: CompletionRequest) -> dict[str, Any]:
        """Request body understood by the completion service."""

        settings = self._settings
        return {
            "model": settings.model,
            "temperature": settings.temperature,
            "client_id": settings.client_id,
            "completion_id": request.completion_id,
            "language_id": request.language_id,
            "calculate_hide_score": request.hide_score.to_payload(),
            "prompt_options": request.prompt_options.to_payload(),
            "parent_id": request.previous_completion_id,
        }

    async def _post(self, request: CompletionRequest) -> Mapping[str, Any]:
        headers = {
            "X-Request-ID": request.completion_id,
            "X-Client-ID": self._settings.client_id,
        }
        try:
            response = await self._http.post(
                self._settings.completions_path,
                json=self.build_payload(request),
                headers=headers,
            )
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as exc:
            raise CompletionClientError(f"Failed to reach completion service: {exc}") from exc
        if response.is_error:
            LOG.info("Completion request %s failed: %s", request.completion_id, response.status_code)
            raise CompletionClientError(
                f"Failed to fetch completion: {response.reason_phrase or response.status_code}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise CompletionClientError("Completion service returned malformed JSON") from exc
        if not isinstance(data, dict):
            raise CompletionClientError("Completion service returned an unexpected payload")
        return data


def extract_completion_text(data: Mapping[str, Any]) -> str:
    """First non-blank choice text, trimmed and without replacement characters.

    Responses truncated by a token limit can end mid-way through a multi-byte
    character, which decodes to U+FFFD.
    """

    choices = data.get("choices")
    if not isinstance(choices, list):
        return ""
    for choice in choices:
        if not isinstance(choice, dict):
            continue
        text = choice.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip().replace(REPLACEMENT_CHAR, "")
    return ""


def extract_completion_id(data: Mapping[str, Any]) -> str:
    choices = data.get("choices")
    response_id = data.get("id")
    if not isinstance(choices, list) or not choices or not response_id:
        return ""
    return str(response_id)


DEMO_COMPLETIONS: Mapping[str, str] = {
    "def add(": "a, b):\n    return a + b",
    "def main(": "):\n    pass",
    "import ": "asyncio",
    "for ": "item in items:",
    "if __name__": ' == "__main__":\n    main()',
}


class DemoCompletionClient:
    """Stub client that answers from a table of prefix endings."""

    def __init__(
        self,
        completions: Mapping[str, str] | Sequence[tuple[str, str]] | None = None,
        *,
        latency: float = 0.05,
    ) -> None:
        source = completions if completions is not None else DEMO_COMPLETIONS
        items = source.items() if isinstance(source, Mapping) else source
        self._completions: tuple[tuple[str, str], ...] = tuple(items)
        self._latency = latency
        self._counter = 0
        self.requests: list[CompletionRequest] = []

    async def fetch(self, request: CompletionRequest, token: CancellationToken) -> Suggestion | None:
        self.requests.append(request)
        text = await run_until_cancelled(self._answer(request), token)
        if text is None:
            return None
        self._counter += 1
        return Suggestion(
            text=text,
            prefix=request.prefix,
            suffix=request.suffix,
            completion_id=f"demo_{self._counter}",
        )

    async def aclose(self) -> None:
        return None

    async def _answer(self, request: CompletionRequest) -> str:
        await asyncio.sleep(self._latency)
        for ending, text in self._completions:
            if request.prefix.endswith(ending):
                return text
        return ""


__all__ = [
    "CompletionClient",
    "CompletionClientError",
    "CompletionTimeoutError",
    "DEMO_COMPLETIONS",
    "DemoCompletionClient",
    "HttpCompletionClient",
    "extract_completion_id",
    "extract_completion_text",
]

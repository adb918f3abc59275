"""Tests for the completion service clients."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from tabpilot.client import (
    CompletionClientError,
    CompletionTimeoutError,
    DemoCompletionClient,
    HttpCompletionClient,
    extract_completion_id,
    extract_completion_text,
)
from tabpilot.config import CompletionSettings
from tabpilot.engine import CancellationToken
from tabpilot.models import ClipboardSnippet, CodeSnippet, CompletionRequest, HideScoreContext, PromptOptions


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _settings(**updates: object) -> CompletionSettings:
    return CompletionSettings(client_id="client-123", model="tab-small", **updates)


def _request(prefix: str = "def add(", suffix: str = ")") -> CompletionRequest:
    return CompletionRequest(
        completion_id="cmpl-req-1",
        language_id="python",
        prompt_options=PromptOptions(
            prefix=prefix,
            suffix=suffix,
            project_path="/work",
            file_project_path="src/math.py",
            recently_edited_ranges=(CodeSnippet(filepath="src/util.py", content="x = 1"),),
            clipboard_content=(ClipboardSnippet(content="copied"),),
        ),
        filepath="src/math.py",
        previous_completion_id="cmpl-prev",
        hide_score=HideScoreContext(document_length=9, prompt_end_pos=8),
    )


def _client(handler, **settings: object) -> HttpCompletionClient:
    resolved = _settings(**settings)
    http = httpx.AsyncClient(base_url=resolved.server_url, transport=httpx.MockTransport(handler))
    return HttpCompletionClient(resolved, http_client=http)


@pytest.mark.anyio
async def test_fetch_posts_payload_and_parses_choice() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "cmpl_1", "choices": [{"text": "  a, b�  "}]})

    client = _client(handler)

    suggestion = await client.fetch(_request(), CancellationToken())

    assert suggestion is not None
    assert suggestion.text == "a, b"
    assert suggestion.completion_id == "cmpl_1"
    assert suggestion.prefix == "def add("
    assert suggestion.suffix == ")"

    sent = seen[0]
    assert sent.method == "POST"
    assert sent.url.path == "/completion-agent/api/v1/completions"
    assert sent.headers["X-Request-ID"] == "cmpl-req-1"
    assert sent.headers["X-Client-ID"] == "client-123"
    body = json.loads(sent.content)
    assert body["model"] == "tab-small"
    assert body["client_id"] == "client-123"
    assert body["completion_id"] == "cmpl-req-1"
    assert body["language_id"] == "python"
    assert body["parent_id"] == "cmpl-prev"
    assert body["calculate_hide_score"]["prompt_end_pos"] == 8
    assert body["prompt_options"]["prefix"] == "def add("
    assert body["prompt_options"]["recently_edited_ranges"] == [
        {"filepath": "src/util.py", "content": "x = 1", "type": "code"}
    ]
    assert body["prompt_options"]["clipboard_content"][0]["type"] == "clipboard"


@pytest.mark.anyio
async def test_error_status_raises_with_status_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = _client(handler)

    with pytest.raises(CompletionClientError) as excinfo:
        await client.fetch(_request(), CancellationToken())

    assert excinfo.value.status_code == 503


@pytest.mark.anyio
async def test_malformed_json_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"not json")

    client = _client(handler)

    with pytest.raises(CompletionClientError, match="malformed"):
        await client.fetch(_request(), CancellationToken())


@pytest.mark.anyio
async def test_transport_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler)

    with pytest.raises(CompletionClientError) as excinfo:
        await client.fetch(_request(), CancellationToken())

    assert excinfo.value.status_code is None
    assert not isinstance(excinfo.value, CompletionTimeoutError)


@pytest.mark.anyio
async def test_slow_service_times_out() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={"id": "late", "choices": [{"text": "x"}]})

    client = _client(handler, network_timeout_ms=50)

    with pytest.raises(CompletionTimeoutError):
        await client.fetch(_request(), CancellationToken())


@pytest.mark.anyio
async def test_cancel_aborts_request() -> None:
    started = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(5)
        return httpx.Response(200, json={"id": "late", "choices": [{"text": "x"}]})

    client = _client(handler)
    token = CancellationToken()

    task = asyncio.create_task(client.fetch(_request(), token))
    await started.wait()
    token.cancel()

    assert await asyncio.wait_for(task, timeout=1.0) is None


def test_extract_completion_text_skips_blank_choices() -> None:
    data = {"choices": [{"text": "   "}, {"text": "\nreturn x\n"}]}

    assert extract_completion_text(data) == "return x"


def test_extract_completion_text_handles_missing_choices() -> None:
    assert extract_completion_text({}) == ""
    assert extract_completion_text({"choices": "nope"}) == ""
    assert extract_completion_text({"choices": [{"text": 3}]}) == ""


def test_extract_completion_id_requires_choices() -> None:
    assert extract_completion_id({"id": "cmpl_1", "choices": [{"text": "x"}]}) == "cmpl_1"
    assert extract_completion_id({"id": "cmpl_1", "choices": []}) == ""
    assert extract_completion_id({"choices": [{"text": "x"}]}) == ""


@pytest.mark.anyio
async def test_demo_client_matches_prefix_ending() -> None:
    client = DemoCompletionClient({"def add(": "a, b):"}, latency=0)

    first = await client.fetch(_request("def add(", ""), CancellationToken())
    second = await client.fetch(_request("x = ", ""), CancellationToken())

    assert first is not None and first.text == "a, b):"
    assert first.completion_id == "demo_1"
    assert second is not None and second.text == ""
    assert second.completion_id == "demo_2"
    assert len(client.requests) == 2


@pytest.mark.anyio
async def test_demo_client_honours_cancellation() -> None:
    client = DemoCompletionClient(latency=5)
    token = CancellationToken()

    task = asyncio.create_task(client.fetch(_request(), token))
    await asyncio.sleep(0.01)
    token.cancel()

    assert await asyncio.wait_for(task, timeout=1.0) is None

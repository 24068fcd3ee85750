"""Tests for LLM helper utilities."""
import json
from types import SimpleNamespace

import httpx
import pytest
from anthropic._exceptions import OverloadedError
from tenacity import wait_none
from unittest.mock import AsyncMock, MagicMock

from ideavault.agent.llm_helpers import invoke_with_retry, parse_json_response, strip_json_fences

pytestmark = pytest.mark.unit


def _overloaded() -> OverloadedError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return OverloadedError("Overloaded", response=httpx.Response(529, request=request), body=None)


def _response(*texts: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=t) for t in texts])


class TestStripJsonFences:
    def test_no_fences(self):
        raw = '{"key": "value"}'
        assert strip_json_fences(raw) == '{"key": "value"}'

    def test_json_fence(self):
        raw = '```json\n{"key": "value"}\n```'
        assert strip_json_fences(raw) == '{"key": "value"}'

    def test_plain_fence(self):
        raw = '```\n{"key": "value"}\n```'
        assert strip_json_fences(raw) == '{"key": "value"}'

    def test_fence_without_newline(self):
        raw = '```json {"key": "value"}```'
        assert strip_json_fences(raw) == '{"key": "value"}'

    def test_fence_with_whitespace(self):
        raw = '  ```json\n{"key": "value"}\n```  '
        assert strip_json_fences(raw) == '{"key": "value"}'

    def test_nested_content_preserved(self):
        raw = '```json\n{"code": "```python\\nprint()\\n```"}\n```'
        # Only strips outermost fences
        result = strip_json_fences(raw)
        assert result.startswith('{"code":')


class TestParseJsonResponse:
    def test_plain_json(self):
        assert parse_json_response('{"key": "value"}') == {"key": "value"}

    def test_fenced_json(self):
        assert parse_json_response('```json\n{"key": "value"}\n```') == {"key": "value"}

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_response("not json at all")


class TestInvokeWithRetry:
    async def test_joins_text_blocks(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=_response("Hello ", "founder"))

        result = await invoke_with_retry(client, model="m", system="s", messages=[{"role": "user", "content": "hi"}])

        assert result == "Hello founder"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["system"] == "s"
        assert kwargs["max_tokens"] == 4096

    async def test_empty_content_returns_empty_string(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=_response())

        assert await invoke_with_retry(client, model="m", system="s", messages=[]) == ""

    async def test_retries_overloaded_then_succeeds(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=[_overloaded(), _response("ok")])
        fast = invoke_with_retry.retry_with(wait=wait_none())

        assert await fast(client, model="m", system="s", messages=[]) == "ok"
        assert client.messages.create.await_count == 2

    async def test_gives_up_after_four_attempts(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=_overloaded())
        fast = invoke_with_retry.retry_with(wait=wait_none())

        with pytest.raises(OverloadedError):
            await fast(client, model="m", system="s", messages=[])
        assert client.messages.create.await_count == 4

    async def test_other_errors_are_not_retried(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=ValueError("bad request"))

        with pytest.raises(ValueError):
            await invoke_with_retry(client, model="m", system="s", messages=[])
        assert client.messages.create.await_count == 1

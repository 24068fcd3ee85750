"""Tests for AnthropicModelClient.

All tests patch invoke_with_retry so no network calls are made.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import anthropic
import httpx
import pytest

from ideavault.agent.model_client import ModelClient
from ideavault.agent.model_client_anthropic import (
    EMPTY_REPLY_FALLBACK,
    AnthropicModelClient,
    close_shared_model_client,
    get_shared_model_client,
    to_anthropic_messages,
)
from ideavault.core.config import Settings
from ideavault.core.exceptions import ModelRequestFailedError
from ideavault.schemas.discovery import ModelConfig

pytestmark = pytest.mark.unit

INVOKE = "ideavault.agent.model_client_anthropic.invoke_with_retry"


@pytest.fixture
def settings():
    return Settings(anthropic_api_key="test-key", model_timeout_seconds=0.2)


@pytest.fixture
def client(settings):
    return AnthropicModelClient(settings)


class TestToAnthropicMessages:
    def test_prepends_user_opener_when_transcript_starts_with_assistant(self):
        turns = to_anthropic_messages(
            [{"role": "assistant", "content": "Welcome"}, {"role": "user", "content": "My idea"}]
        )

        assert [t["role"] for t in turns] == ["user", "assistant", "user"]
        assert turns[1]["content"] == "Welcome"

    def test_merges_consecutive_same_role_messages(self):
        turns = to_anthropic_messages(
            [{"role": "user", "content": "one"}, {"role": "user", "content": "two"}]
        )

        assert turns == [{"role": "user", "content": "one\n\ntwo"}]

    def test_does_not_mutate_input(self):
        messages = [{"role": "user", "content": "one"}, {"role": "user", "content": "two"}]
        to_anthropic_messages(messages)
        assert messages[0]["content"] == "one"


class TestAnthropicModelClient:
    def test_satisfies_protocol(self, client):
        assert isinstance(client, ModelClient)

    async def test_returns_reply_text(self, client):
        invoke = AsyncMock(return_value="Tell me more.")
        with patch(INVOKE, invoke):
            result = await client.complete("persona", [{"role": "user", "content": "hi"}])

        assert result == "Tell me more."
        kwargs = invoke.call_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-20250514"
        assert kwargs["system"] == "persona"

    async def test_structured_output_tightens_system_prompt(self, client):
        invoke = AsyncMock(return_value="{}")
        with patch(INVOKE, invoke):
            await client.complete("persona", [{"role": "user", "content": "hi"}], structured_output=True)

        system = invoke.call_args.kwargs["system"]
        assert system.startswith("persona")
        assert "JSON" in system

    async def test_model_override(self, client):
        invoke = AsyncMock(return_value="ok")
        with patch(INVOKE, invoke):
            await client.complete("persona", [], config=ModelConfig(model="claude-haiku-test"))

        assert invoke.call_args.kwargs["model"] == "claude-haiku-test"

    async def test_override_client_is_closed_after_each_call(self, client):
        invoke = AsyncMock(return_value="ok")
        close = AsyncMock()
        with patch(INVOKE, invoke), patch.object(anthropic.AsyncAnthropic, "close", close):
            for _ in range(3):
                await client.complete("persona", [], config=ModelConfig(api_key="user-key"))

        assert close.await_count == 3
        assert invoke.call_args.args[0] is not client._default_client

    async def test_override_client_is_closed_when_call_fails(self, client):
        error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        close = AsyncMock()
        with patch(INVOKE, AsyncMock(side_effect=error)), patch.object(anthropic.AsyncAnthropic, "close", close):
            with pytest.raises(ModelRequestFailedError):
                await client.complete("persona", [], config=ModelConfig(base_url="https://proxy.test"))

        close.assert_awaited_once()

    async def test_default_client_is_reused_and_left_open(self, client):
        invoke = AsyncMock(return_value="ok")
        close = AsyncMock()
        with patch(INVOKE, invoke), patch.object(anthropic.AsyncAnthropic, "close", close):
            await client.complete("persona", [])
            await client.complete("persona", [])

        first, second = (call.args[0] for call in invoke.call_args_list)
        assert first is second
        close.assert_not_awaited()

    async def test_aclose_closes_default_client(self, client):
        close = AsyncMock()
        with patch(INVOKE, AsyncMock(return_value="ok")), patch.object(anthropic.AsyncAnthropic, "close", close):
            await client.complete("persona", [])
            await client.aclose()
            await client.aclose()

        close.assert_awaited_once()
        assert client._default_client is None

    async def test_shared_client_is_one_instance_until_closed(self, settings):
        try:
            shared = get_shared_model_client(settings)
            assert get_shared_model_client(settings) is shared
        finally:
            await close_shared_model_client()

        assert get_shared_model_client(settings) is not shared
        await close_shared_model_client()

    @pytest.mark.parametrize("reply", ["", "   \n"])
    async def test_empty_reply_becomes_fallback(self, client, reply):
        with patch(INVOKE, AsyncMock(return_value=reply)):
            assert await client.complete("persona", []) == EMPTY_REPLY_FALLBACK

    async def test_api_error_becomes_model_request_failed(self, client):
        error = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        with patch(INVOKE, AsyncMock(side_effect=error)):
            with pytest.raises(ModelRequestFailedError):
                await client.complete("persona", [])

    async def test_timeout_becomes_model_request_failed(self, client):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)
            return "too late"

        with patch(INVOKE, slow):
            with pytest.raises(ModelRequestFailedError, match="timed out"):
                await client.complete("persona", [])

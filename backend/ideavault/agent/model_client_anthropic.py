"""AnthropicModelClient: production ModelClient backed by the anthropic SDK.

- asyncio.wait_for timeout around every call
- Tenacity retry on 529 OverloadedError (via invoke_with_retry)
- Provider and timeout errors surface as ModelRequestFailedError
- Empty replies are replaced with a fallback apology
"""

import asyncio
from collections.abc import Sequence

import anthropic
import structlog

from ideavault.agent.llm_helpers import invoke_with_retry
from ideavault.core.config import Settings, get_settings
from ideavault.core.exceptions import ModelRequestFailedError
from ideavault.schemas.discovery import ModelConfig

logger = structlog.get_logger(__name__)

EMPTY_REPLY_FALLBACK = "I apologize, I encountered an issue. Could you repeat that?"

# The Messages API requires the first turn to come from the user; discovery
# transcripts open with the assistant's welcome message.
_CONVERSATION_OPENER = "Hi! I'd like help refining a startup idea."

_STRUCTURED_OUTPUT_SUFFIX = (
    "\n\nOUTPUT FORMAT: Reply with a single raw JSON object only. "
    "Do not wrap it in markdown code fences and do not add any prose."
)


def to_anthropic_messages(messages: Sequence[dict]) -> list[dict]:
    """Convert a transcript into Messages API turns.

    Consecutive same-role entries are merged and a user opener is prepended
    when the transcript starts with the assistant.
    """
    turns: list[dict] = []
    for message in messages:
        role = message["role"]
        content = message["content"]
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n\n{content}"
        else:
            turns.append({"role": role, "content": content})

    if turns and turns[0]["role"] != "user":
        turns.insert(0, {"role": "user", "content": _CONVERSATION_OPENER})
    return turns


class AnthropicModelClient:
    """Claude-backed ModelClient.

    The default SDK client lives as long as this object and is released by
    aclose(). A per-request api_key/base_url override gets its own client,
    closed as soon as the call returns.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._default_client: anthropic.AsyncAnthropic | None = None

    def _get_default_client(self) -> anthropic.AsyncAnthropic:
        if self._default_client is None:
            self._default_client = anthropic.AsyncAnthropic(
                api_key=self.settings.anthropic_api_key,
                base_url=self.settings.anthropic_base_url or None,
            )
        return self._default_client

    def _override_client(self, config: ModelConfig | None) -> anthropic.AsyncAnthropic | None:
        if config is None or not (config.api_key or config.base_url):
            return None
        return anthropic.AsyncAnthropic(
            api_key=config.api_key or self.settings.anthropic_api_key,
            base_url=config.base_url or self.settings.anthropic_base_url or None,
        )

    async def aclose(self) -> None:
        """Close the default SDK client and its connection pool."""
        if self._default_client is not None:
            await self._default_client.close()
            self._default_client = None

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[dict],
        structured_output: bool = False,
        config: ModelConfig | None = None,
    ) -> str:
        model = (config.model if config and config.model else None) or self.settings.discovery_model
        system = system_prompt + _STRUCTURED_OUTPUT_SUFFIX if structured_output else system_prompt
        turns = to_anthropic_messages(messages)

        override = self._override_client(config)
        if override is None:
            text = await self._invoke(self._get_default_client(), model, system, turns)
        else:
            async with override:
                text = await self._invoke(override, model, system, turns)

        if not text.strip():
            logger.info("model_returned_empty_reply", model=model)
            return EMPTY_REPLY_FALLBACK
        return text

    async def _invoke(
        self,
        client: anthropic.AsyncAnthropic,
        model: str,
        system: str,
        turns: list[dict],
    ) -> str:
        try:
            return await asyncio.wait_for(
                invoke_with_retry(
                    client,
                    model=model,
                    system=system,
                    messages=turns,
                    max_tokens=self.settings.discovery_max_tokens,
                ),
                timeout=self.settings.model_timeout_seconds,
            )
        except TimeoutError as exc:
            logger.warning("model_request_timeout", model=model, timeout=self.settings.model_timeout_seconds)
            raise ModelRequestFailedError(
                f"Model request timed out after {self.settings.model_timeout_seconds}s"
            ) from exc
        except anthropic.APIError as exc:
            logger.warning("model_request_failed", model=model, error=str(exc), error_type=type(exc).__name__)
            raise ModelRequestFailedError(f"Model request failed: {type(exc).__name__}") from exc


_shared_client: AnthropicModelClient | None = None


def get_shared_model_client(settings: Settings | None = None) -> AnthropicModelClient:
    """Process-wide client reused across requests; closed on shutdown."""
    global _shared_client
    if _shared_client is None:
        _shared_client = AnthropicModelClient(settings)
    return _shared_client


async def close_shared_model_client() -> None:
    global _shared_client
    if _shared_client is not None:
        await _shared_client.aclose()
        _shared_client = None

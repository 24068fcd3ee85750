"""Shared LLM utility functions for retry, fence-stripping, and JSON parsing.

This module provides:
- strip_json_fences: Remove markdown code fences from LLM output
- parse_json_response: Parse JSON from LLM response after stripping fences
- invoke_with_retry: Retry messages.create() on Claude 529 OverloadedError
"""

import json
import re
from typing import Any

import structlog
from anthropic._exceptions import OverloadedError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

_OPENING_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")


def strip_json_fences(content: str) -> str:
    """Remove markdown code fences wrapping JSON output.

    Handles ```json / ``` openers, a missing newline after the opener, and
    surrounding whitespace. Only the outermost fence pair is removed.
    """
    content = content.strip()
    if content.startswith("```"):
        content = _OPENING_FENCE.sub("", content, count=1)
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()
    return content


def parse_json_response(content: str) -> Any:
    """Parse JSON from LLM response, stripping fences first.

    Raises:
        json.JSONDecodeError: If the remaining text is not valid JSON
    """
    return json.loads(strip_json_fences(content))


@retry(
    retry=retry_if_exception_type(OverloadedError),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "claude_overloaded_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
    ),
)
async def invoke_with_retry(
    client: Any,
    model: str,
    system: str,
    messages: list[dict],
    max_tokens: int = 4096,
) -> str:
    """Invoke Anthropic messages.create() with retry on Claude 529 overload.

    Retries up to 3 times with exponential backoff (2s, 4s, 8s max 30s).
    Only retries OverloadedError (529). All other exceptions propagate immediately.

    Args:
        client: anthropic.AsyncAnthropic (or any object with .messages.create())
        model: Model name
        system: System prompt string
        messages: List of message dicts (role/content format)
        max_tokens: Maximum tokens for the response

    Returns:
        Concatenated text of the response's text blocks ("" if there are none)
    """
    response = await client.messages.create(
        model=model,
        system=system,
        messages=messages,
        max_tokens=max_tokens,
    )
    return "".join(getattr(block, "text", "") for block in response.content)

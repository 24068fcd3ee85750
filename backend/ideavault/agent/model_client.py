"""ModelClient Protocol: the testable abstraction over the text-completion provider.

Decouples the discovery services from any particular LLM SDK. Implementations:
- AnthropicModelClient: production client (Claude via the anthropic SDK)
- ModelClientFake: scenario-based deterministic test double
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ideavault.schemas.discovery import ModelConfig


@runtime_checkable
class ModelClient(Protocol):
    """Prompt in, text out."""

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[dict],
        structured_output: bool = False,
        config: ModelConfig | None = None,
    ) -> str:
        """Produce the assistant's next reply.

        Args:
            system_prompt: Persona + phase instructions
            messages: Ordered transcript as {"role": "user"|"assistant", "content": str}
            structured_output: Best-effort request for a raw JSON reply. A hint only;
                callers must still handle non-JSON text.
            config: Optional per-request model/provider override

        Returns:
            Reply text

        Raises:
            ModelRequestFailedError: On provider error or timeout
        """
        ...

"""Synthesis parsing and validation.

Turns the model's final-phase reply into a ``SynthesisOutput``. The payload is
accepted or rejected as a whole; downstream research needs every field.
"""

import json

import structlog
from pydantic import ValidationError

from ideavault.agent.llm_helpers import parse_json_response
from ideavault.core.exceptions import SynthesisParseError
from ideavault.schemas.discovery import SynthesisOutput

logger = structlog.get_logger(__name__)


def parse_synthesis(raw_text: str) -> SynthesisOutput:
    """Parse and validate a synthesis document.

    Args:
        raw_text: Model output, optionally wrapped in a markdown code fence

    Returns:
        Validated SynthesisOutput

    Raises:
        SynthesisParseError: On malformed JSON or any schema violation
    """
    try:
        payload = parse_json_response(raw_text)
    except json.JSONDecodeError as exc:
        raise SynthesisParseError(f"Synthesis output is not valid JSON: {exc.msg}") from exc

    if not isinstance(payload, dict):
        raise SynthesisParseError(
            f"Synthesis output must be a JSON object, got {type(payload).__name__}"
        )

    try:
        return SynthesisOutput.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        raise SynthesisParseError(
            f"Synthesis output failed validation ({exc.error_count()} errors): {', '.join(fields)}"
        ) from exc


def try_parse_synthesis(raw_text: str) -> SynthesisOutput | None:
    """Parse a synthesis document, returning None instead of raising.

    Used on conversational turns, where a bad document only means the phase
    does not advance.
    """
    try:
        return parse_synthesis(raw_text)
    except SynthesisParseError as exc:
        logger.warning("synthesis_parse_failed", reason=str(exc), output_length=len(raw_text))
        return None

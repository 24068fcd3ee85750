"""Tests for the discovery prompt set."""

import pytest

from ideavault.discovery.phases import DiscoveryPhase
from ideavault.discovery.prompts import (
    DEFAULT_PROMPTS,
    DISCOVERY_SYSTEM_PROMPT,
    PHASE_TRANSITION_SIGNALS,
    SYNTHESIS_OUTPUT_SCHEMA,
    PromptTemplates,
)
from ideavault.discovery.transitions import find_trigger_phrase

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("phase", list(DiscoveryPhase))
def test_every_phase_has_a_prompt(phase):
    assert DEFAULT_PROMPTS.phase_prompt(phase)


def test_system_prompt_is_persona_then_phase():
    prompt = DEFAULT_PROMPTS.compose_system_prompt(DiscoveryPhase.GAPS)

    assert prompt.startswith(DISCOVERY_SYSTEM_PROMPT)
    assert "CURRENT PHASE: Gap Analysis" in prompt


def test_synthesis_prompt_embeds_schema():
    prompt = DEFAULT_PROMPTS.phase_prompt(DiscoveryPhase.SYNTHESIS)

    assert SYNTHESIS_OUTPUT_SCHEMA in prompt
    assert "{schema}" not in prompt


@pytest.mark.parametrize(
    "phase",
    [DiscoveryPhase.VISION, DiscoveryPhase.GAPS, DiscoveryPhase.FOUNDER_FIT],
)
def test_phase_prompt_asks_for_one_of_its_own_trigger_phrases(phase):
    """The closing sentence each prompt requests must be detectable."""
    prompt = DEFAULT_PROMPTS.phase_prompt(phase)
    assert find_trigger_phrase(prompt, PHASE_TRANSITION_SIGNALS[phase]) is not None


def test_synthesis_has_no_trigger_phrases():
    assert DEFAULT_PROMPTS.signals_for(DiscoveryPhase.SYNTHESIS) == ()


def test_missing_phase_prompt_raises_key_error():
    prompts = PromptTemplates(phase_prompts={DiscoveryPhase.VISION: "vision only"})

    with pytest.raises(KeyError):
        prompts.phase_prompt(DiscoveryPhase.GAPS)


def test_prompt_set_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_PROMPTS.phase_prompts[DiscoveryPhase.VISION] = "changed"


def test_force_synthesis_prompt_contains_schema_and_transcript():
    prompt = DEFAULT_PROMPTS.build_force_synthesis_prompt(
        [("assistant", "Tell me about your idea."), ("user", "Software for bike shops.")]
    )

    assert SYNTHESIS_OUTPUT_SCHEMA in prompt
    assert "ASSISTANT: Tell me about your idea.\n\nUSER: Software for bike shops." in prompt
    assert prompt.rstrip().endswith("USER: Software for bike shops.")


def test_welcome_message_invites_the_idea():
    assert "Tell me about your idea" in DEFAULT_PROMPTS.welcome_message

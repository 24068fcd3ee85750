"""Tests for trigger-phrase phase transition detection."""

import pytest

from ideavault.discovery.phases import DiscoveryPhase
from ideavault.discovery.prompts import PHASE_TRANSITION_SIGNALS
from ideavault.discovery.transitions import detect_phase_transition, find_trigger_phrase

pytestmark = pytest.mark.unit


def detect(phase: DiscoveryPhase, text: str) -> DiscoveryPhase:
    return detect_phase_transition(phase, text, PHASE_TRANSITION_SIGNALS)


class TestDetectPhaseTransition:
    def test_vision_advances_on_readiness_phrase(self):
        text = "I think I have a clear picture of your vision. Ready to explore some deeper questions?"
        assert detect(DiscoveryPhase.VISION, text) is DiscoveryPhase.GAPS

    def test_vision_stays_without_phrase(self):
        text = "Interesting! Who would be paying for this?"
        assert detect(DiscoveryPhase.VISION, text) is DiscoveryPhase.VISION

    def test_gaps_advances_on_readiness_phrase(self):
        text = (
            "These are great areas to validate. Now let's understand your position "
            "as a founder for this specific idea."
        )
        assert detect(DiscoveryPhase.GAPS, text) is DiscoveryPhase.FOUNDER_FIT

    def test_gaps_stays_without_phrase(self):
        assert detect(DiscoveryPhase.GAPS, "Have you talked to any customers yet?") is DiscoveryPhase.GAPS

    def test_founder_fit_advances_on_readiness_phrase(self):
        text = "I have a great sense of your strengths. Let me synthesize everything into a research prompt for you."
        assert detect(DiscoveryPhase.FOUNDER_FIT, text) is DiscoveryPhase.SYNTHESIS

    def test_founder_fit_stays_without_phrase(self):
        text = "How many hours a week can you commit?"
        assert detect(DiscoveryPhase.FOUNDER_FIT, text) is DiscoveryPhase.FOUNDER_FIT

    def test_match_is_case_insensitive(self):
        assert detect(DiscoveryPhase.VISION, "READY TO EXPLORE the market?") is DiscoveryPhase.GAPS

    def test_later_phase_phrase_does_not_advance_earlier_phase(self):
        text = "Let me synthesize everything into a research prompt."
        assert detect(DiscoveryPhase.VISION, text) is DiscoveryPhase.VISION

    def test_advances_at_most_one_phase(self):
        text = (
            "I have a clear picture of your vision. These are great areas to validate. "
            "I have a great sense of your strengths."
        )
        assert detect(DiscoveryPhase.VISION, text) is DiscoveryPhase.GAPS

    @pytest.mark.parametrize("phase", [DiscoveryPhase.SYNTHESIS, DiscoveryPhase.COMPLETE])
    def test_synthesis_and_complete_never_advance_on_keywords(self, phase):
        text = "research prompt, ready to explore, as a founder, synthesize everything"
        assert detect(phase, text) is phase

    def test_missing_signals_for_phase_means_no_transition(self):
        result = detect_phase_transition(DiscoveryPhase.VISION, "ready to explore", {})
        assert result is DiscoveryPhase.VISION


class TestFindTriggerPhrase:
    def test_returns_first_matching_phrase(self):
        assert find_trigger_phrase("We are Ready To Explore", ("deeper questions", "ready to explore")) == "ready to explore"

    def test_returns_none_without_match(self):
        assert find_trigger_phrase("nothing here", ("ready to explore",)) is None

"""ModelClientFake: Scenario-based test double for the ModelClient protocol.

Provides deterministic, instant responses for named scenarios:
- happy_path: each phase reply carries its trigger phrase; synthesis returns valid JSON
- llm_failure: every call raises ModelRequestFailedError
- malformed_synthesis: like happy_path, but synthesis replies are not valid JSON
- no_transition: replies never contain a trigger phrase

A ``replies`` script overrides the scenario and is consumed in order.
"""

import json
from collections.abc import Sequence

from ideavault.core.exceptions import ModelRequestFailedError
from ideavault.schemas.discovery import ModelConfig

HAPPY_PATH_SYNTHESIS: dict = {
    "tldr": {
        "refinedIdea": "A booking and inventory tool for independent bike repair shops.",
        "targetMarket": "Owner-operated bike repair shops with 1-5 mechanics",
        "keyDifferentiator": "Parts inventory tied directly to repair bookings",
        "mainRisks": [
            "Shops may not pay for software",
            "Existing POS vendors could add the feature",
            "Parts catalog data is fragmented",
        ],
        "founderFitScore": 7,
    },
    "fullPrompt": {
        "problemStatement": "Independent bike shops lose revenue to double-booked repairs and missing parts.",
        "targetCustomer": {
            "profile": "Owner-operators of small urban bike repair shops",
            "painPoints": ["Paper booking sheets", "Parts run out mid-repair"],
            "currentSolutions": "Spreadsheets, paper calendars and generic POS systems",
        },
        "valueProposition": "Never start a repair you cannot finish.",
        "hypotheses": ["Shops will pay $49/month", "Parts shortages cause weekly delays"],
        "competitiveResearch": ["Bike shop POS vendors", "Generic booking tools"],
        "marketIndicators": ["Number of independent bike shops", "Average shop software spend"],
        "evaluationCriteria": ["10 shops on paid pilot within 3 months"],
    },
    "founderFit": {
        "technicalSkills": {"has": ["Python", "Web development"], "needs": ["Mobile development"]},
        "domainExpertise": "Worked as a bike mechanic for four years",
        "resources": {
            "time": "Evenings and weekends",
            "capital": "Self-funded, small savings",
            "network": "Knows a dozen local shop owners",
        },
        "motivation": "High; personally felt the problem",
        "learningPath": ["Customer discovery interviews", "Basic mobile development"],
        "hireRecommendations": ["Part-time sales lead"],
    },
}

PHASE_REPLIES: dict[str, str] = {
    "Vision Extraction": (
        "That's a compelling problem. I think I have a clear picture of your vision. "
        "Ready to explore some deeper questions?"
    ),
    "Gap Analysis": (
        "These are great areas to validate. Now let's understand your position "
        "as a founder for this specific idea."
    ),
    "Founder-Fit Assessment": (
        "I have a great sense of your strengths. Let me synthesize everything "
        "into a research prompt for you."
    ),
}

NO_TRANSITION_REPLY = "I'm still thinking about your market. Who pays for this today?"
MALFORMED_SYNTHESIS_REPLY = 'Here is your summary: {"tldr": {"refinedIdea": "Bike shops"'
GENERIC_REPLY = "Thanks for sharing. Tell me more."


class ModelClientFake:
    """Scenario-based test double for the ModelClient protocol."""

    VALID_SCENARIOS = {"happy_path", "llm_failure", "malformed_synthesis", "no_transition"}

    def __init__(
        self,
        scenario: str = "happy_path",
        replies: Sequence[str] | None = None,
        fence_synthesis: bool = True,
    ):
        """Initialize ModelClientFake with a named scenario.

        Args:
            scenario: One of VALID_SCENARIOS
            replies: Optional scripted replies, returned in order before the scenario applies
            fence_synthesis: Wrap synthesis JSON in a ```json fence, as real models often do

        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(
                f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}"
            )
        self.scenario = scenario
        self.replies = list(replies or [])
        self.fence_synthesis = fence_synthesis
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[dict],
        structured_output: bool = False,
        config: ModelConfig | None = None,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "messages": [dict(m) for m in messages],
                "structured_output": structured_output,
                "config": config,
            }
        )

        if self.scenario == "llm_failure":
            raise ModelRequestFailedError("Anthropic API rate limit exceeded. Retry after 60 seconds.")

        if self.replies:
            return self.replies.pop(0)

        if self.scenario == "no_transition":
            return NO_TRANSITION_REPLY

        if structured_output:
            if self.scenario == "malformed_synthesis":
                return MALFORMED_SYNTHESIS_REPLY
            return self._synthesis_reply()

        for marker, reply in PHASE_REPLIES.items():
            if marker in system_prompt:
                return reply
        return GENERIC_REPLY

    def _synthesis_reply(self) -> str:
        body = json.dumps(HAPPY_PATH_SYNTHESIS, indent=2)
        if self.fence_synthesis:
            return f"```json\n{body}\n```"
        return body

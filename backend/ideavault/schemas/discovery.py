"""Discovery Pydantic schemas: session aggregate, synthesis contract and API contracts."""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ideavault.discovery.phases import DiscoveryPhase, MessageRole, SessionStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


# =============================================================================
# SYNTHESIS OUTPUT (camelCase on the wire, snake_case in Python)
# =============================================================================


class _SynthesisPart(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class SynthesisTLDR(_SynthesisPart):
    """Short summary shown before the full research prompt."""

    refined_idea: str
    target_market: str
    key_differentiator: str
    main_risks: list[str]  # expected length 3; not enforced
    founder_fit_score: int = Field(..., ge=1, le=10, strict=True)


class TargetCustomer(_SynthesisPart):
    profile: str
    pain_points: list[str]
    current_solutions: str


class ResearchPrompt(_SynthesisPart):
    """Structured research brief consumed by downstream market research."""

    problem_statement: str
    target_customer: TargetCustomer
    value_proposition: str
    hypotheses: list[str]
    competitive_research: list[str]
    market_indicators: list[str]
    evaluation_criteria: list[str]


class TechnicalSkills(_SynthesisPart):
    has: list[str]
    needs: list[str]


class FounderResources(_SynthesisPart):
    time: str
    capital: str
    network: str


class FounderFit(_SynthesisPart):
    """Founder's skills, resources and motivation relative to the idea."""

    technical_skills: TechnicalSkills
    domain_expertise: str
    resources: FounderResources
    motivation: str
    learning_path: list[str]
    hire_recommendations: list[str]


class SynthesisOutput(_SynthesisPart):
    """Complete synthesis payload. Accepted or rejected as a whole."""

    tldr: SynthesisTLDR
    full_prompt: ResearchPrompt
    founder_fit: FounderFit

    def to_wire(self) -> dict[str, Any]:
        """camelCase JSON-compatible dict, the stored and transmitted form."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# SESSION AGGREGATE
# =============================================================================


class Message(BaseModel):
    """One transcript entry."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class DiscoverySessionRecord(BaseModel):
    """Serializable snapshot of a discovery session as held by the session store."""

    id: str
    idea_id: str | None = None
    owner_id: str
    messages: list[Message]
    current_phase: DiscoveryPhase = DiscoveryPhase.VISION
    founder_fit: FounderFit | None = None
    refined_prompt: SynthesisOutput | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    version: int = 1
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def message_count(self) -> int:
        return len(self.messages)


class ModelConfig(BaseModel):
    """Per-request model override (user-specific provider settings)."""

    model_config = ConfigDict(protected_namespaces=())

    model: str | None = None
    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None


# =============================================================================
# API CONTRACTS
# =============================================================================


class SeedIdea(BaseModel):
    """Optional idea the session was started from (echoed back, not persisted)."""

    title: str
    description: str = ""


class StartDiscoveryRequest(BaseModel):
    """Request to start a new discovery session."""

    idea_id: str | None = None
    seed_idea: SeedIdea | None = None

    @field_validator("idea_id")
    @classmethod
    def validate_idea_id(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            return str(uuid.UUID(v))
        except ValueError:
            raise ValueError("idea_id must be a UUID")



class SendMessageRequest(BaseModel):
    """Request to send one user turn."""

    model_config = ConfigDict(protected_namespaces=())

    content: str = Field(..., min_length=1)
    model_config_override: ModelConfig | None = Field(default=None, alias="model_config")

    @field_validator("content")
    @classmethod
    def reject_whitespace_only(cls, v: str) -> str:
        """Reject empty or whitespace-only messages."""
        if not v.strip():
            raise ValueError("Message cannot be empty or whitespace-only")
        return v


class ForceSynthesisRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_config_override: ModelConfig | None = Field(default=None, alias="model_config")


class AdvancePhaseRequest(BaseModel):
    """Request to force the session into a phase."""

    target_phase: DiscoveryPhase


class MessageResponse(BaseModel):
    role: MessageRole
    content: str
    timestamp: datetime


class DiscoverySessionResponse(BaseModel):
    """Response for a discovery session."""

    id: str
    idea_id: str | None
    status: SessionStatus
    current_phase: DiscoveryPhase
    messages: list[MessageResponse]
    message_count: int
    founder_fit: FounderFit | None
    refined_prompt: SynthesisOutput | None
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_record(cls, record: DiscoverySessionRecord) -> "DiscoverySessionResponse":
        return cls(
            id=record.id,
            idea_id=record.idea_id,
            status=record.status,
            current_phase=record.current_phase,
            messages=[MessageResponse(**m.model_dump()) for m in record.messages],
            message_count=record.message_count,
            founder_fit=record.founder_fit,
            refined_prompt=record.refined_prompt,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


class StartDiscoveryResponse(BaseModel):
    session: DiscoverySessionResponse
    welcome_message: str
    seed_idea: SeedIdea | None = None


class SendMessageResponse(BaseModel):
    """Result of one conversational turn."""

    response: str
    current_phase: DiscoveryPhase
    is_complete: bool
    synthesis_output: SynthesisOutput | None = None
    message_count: int


class SessionSummary(BaseModel):
    """Synthesis summary of a completed session.

    Serialized in camelCase like the synthesis sections it embeds.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tldr: SynthesisTLDR
    full_prompt: ResearchPrompt
    founder_fit: FounderFit
    message_count: int

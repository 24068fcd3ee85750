"""ConversationOrchestrator: one discovery turn, committed atomically.

Responsibilities:
- Load the session and reject non-active sessions
- Compose persona + phase prompt and call the model with the full transcript
- Advance the phase (trigger phrases, or a successful synthesis parse)
- Persist user message, assistant message and phase change in one update
- Serialize turns per session (Redis lease + version compare-and-set)
"""

import contextlib
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from ideavault.agent.model_client import ModelClient
from ideavault.core.exceptions import SessionNotActiveError
from ideavault.core.locking import SessionLock
from ideavault.db.session_store import SessionStore
from ideavault.discovery.phases import DiscoveryPhase, MessageRole, SessionStatus
from ideavault.discovery.prompts import DEFAULT_PROMPTS, PromptTemplates
from ideavault.discovery.synthesis import parse_synthesis, try_parse_synthesis
from ideavault.discovery.transitions import detect_phase_transition
from ideavault.schemas.discovery import (
    DiscoverySessionRecord,
    Message,
    ModelConfig,
    SynthesisOutput,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one send_message call."""

    response_text: str
    new_phase: DiscoveryPhase
    is_complete: bool
    synthesis_output: SynthesisOutput | None
    session: DiscoverySessionRecord

    @property
    def message_count(self) -> int:
        return self.session.message_count


def to_model_messages(messages: Sequence[Message]) -> list[dict]:
    """Transcript in the role/content shape the model client expects."""
    return [{"role": m.role.value, "content": m.content} for m in messages]


def completion_patch(synthesis: SynthesisOutput, now: datetime | None = None) -> dict[str, Any]:
    """Fields written together when a synthesis succeeds."""
    return {
        "current_phase": DiscoveryPhase.COMPLETE,
        "founder_fit": synthesis.founder_fit,
        "refined_prompt": synthesis,
        "status": SessionStatus.COMPLETED,
        "completed_at": now or datetime.now(UTC),
    }


def ensure_active(session: DiscoverySessionRecord) -> None:
    if not session.is_active:
        raise SessionNotActiveError(session.id, session.status.value)


class ConversationOrchestrator:
    """Stateful core of the discovery conversation."""

    def __init__(
        self,
        model_client: ModelClient,
        store: SessionStore,
        session_lock: SessionLock | None = None,
        prompts: PromptTemplates = DEFAULT_PROMPTS,
    ):
        """Initialize with collaborators.

        Args:
            model_client: ModelClient implementation (ModelClientFake for tests)
            store: SessionStore implementation (SessionStoreFake for tests)
            session_lock: Per-session lease. Without it, only the version check guards
                concurrent writers.
            prompts: Prompt set; DEFAULT_PROMPTS unless a test substitutes its own
        """
        self.model_client = model_client
        self.store = store
        self.session_lock = session_lock
        self.prompts = prompts

    @contextlib.asynccontextmanager
    async def serialized(self, session_id: str) -> AsyncIterator[None]:
        """Hold the per-session lease for the duration of the block."""
        if self.session_lock is None:
            yield
            return
        async with self.session_lock.hold(session_id):
            yield

    async def send_message(
        self,
        session_id: str,
        user_text: str,
        model_config: ModelConfig | None = None,
        owner_id: str | None = None,
    ) -> TurnResult:
        """Process one user turn.

        Args:
            session_id: Discovery session id
            user_text: The user's message
            model_config: Optional per-request model override
            owner_id: When given, the session must belong to this owner

        Returns:
            TurnResult with the reply, the phase after the turn, and the synthesis
            if this turn produced one

        Raises:
            SessionNotFoundError: If the session does not exist (for this owner)
            SessionNotActiveError: If the session is completed or skipped
            ModelRequestFailedError: If the model call fails (nothing is persisted)
            ConcurrencyConflictError: If another turn holds or changed the session
            StorageError: If the store fails (nothing is persisted)
        """
        log = logger.bind(session_id=session_id)

        async with self.serialized(session_id):
            session = await self.store.get(session_id, owner_id=owner_id)
            ensure_active(session)

            phase = session.current_phase
            transcript = [*session.messages, Message(role=MessageRole.USER, content=user_text)]

            reply = await self.model_client.complete(
                self.prompts.compose_system_prompt(phase),
                to_model_messages(transcript),
                structured_output=phase is DiscoveryPhase.SYNTHESIS,
                config=model_config,
            )
            transcript.append(Message(role=MessageRole.ASSISTANT, content=reply))

            synthesis: SynthesisOutput | None = None
            if phase is DiscoveryPhase.SYNTHESIS:
                synthesis = try_parse_synthesis(reply)
                next_phase = DiscoveryPhase.COMPLETE if synthesis else DiscoveryPhase.SYNTHESIS
            else:
                next_phase = detect_phase_transition(phase, reply, self.prompts.transition_signals)

            patch: dict[str, Any] = {"messages": transcript, "current_phase": next_phase}
            if synthesis is not None:
                patch.update(completion_patch(synthesis))

            updated = await self.store.update(
                session_id, patch, expected_version=session.version, owner_id=owner_id
            )

        if next_phase != phase:
            log.info("discovery_phase_advanced", from_phase=phase.value, to_phase=next_phase.value)
        log.info(
            "discovery_turn_completed",
            phase=next_phase.value,
            message_count=updated.message_count,
            synthesized=synthesis is not None,
        )

        return TurnResult(
            response_text=reply,
            new_phase=next_phase,
            is_complete=next_phase is DiscoveryPhase.COMPLETE,
            synthesis_output=synthesis,
            session=updated,
        )

    async def synthesize_transcript(
        self,
        session: DiscoverySessionRecord,
        model_config: ModelConfig | None = None,
    ) -> SynthesisOutput:
        """Ask for a synthesis over the whole transcript in one model call.

        Does not touch the store; the caller persists the result.

        Raises:
            ModelRequestFailedError: If the model call fails
            SynthesisParseError: If the reply is not a valid synthesis document
        """
        request = self.prompts.build_force_synthesis_prompt(
            (m.role.value, m.content) for m in session.messages
        )
        reply = await self.model_client.complete(
            self.prompts.system_prompt,
            [{"role": MessageRole.USER.value, "content": request}],
            structured_output=True,
            config=model_config,
        )
        return parse_synthesis(reply)

"""DiscoveryService: discovery session lifecycle on top of the conversation orchestrator.

Responsibilities:
- Session lifecycle: start, skip, force-advance, refine (reset to vision), force synthesis
- Summary retrieval for completed sessions
- Owner scoping on every lookup
- Per-session serialization for every write
"""

import uuid
from datetime import UTC, datetime

import structlog

from ideavault.agent.model_client import ModelClient
from ideavault.core.exceptions import SessionNotActiveError, SynthesisFailedError, SynthesisParseError
from ideavault.core.locking import SessionLock
from ideavault.db.session_store import SessionStore
from ideavault.discovery.phases import DiscoveryPhase, MessageRole, SessionStatus
from ideavault.discovery.prompts import DEFAULT_PROMPTS, PromptTemplates
from ideavault.schemas.discovery import (
    DiscoverySessionRecord,
    Message,
    ModelConfig,
    SessionSummary,
    SynthesisOutput,
)
from ideavault.services.conversation_service import (
    ConversationOrchestrator,
    TurnResult,
    completion_patch,
    ensure_active,
)

logger = structlog.get_logger(__name__)


class DiscoveryService:
    """Caller-facing discovery operations."""

    def __init__(
        self,
        model_client: ModelClient,
        store: SessionStore,
        session_lock: SessionLock | None = None,
        prompts: PromptTemplates = DEFAULT_PROMPTS,
    ):
        self.store = store
        self.prompts = prompts
        self.orchestrator = ConversationOrchestrator(
            model_client=model_client,
            store=store,
            session_lock=session_lock,
            prompts=prompts,
        )

    async def start_session(self, owner_id: str, idea_id: str | None = None) -> DiscoverySessionRecord:
        """Create an active session in the vision phase, seeded with the welcome message.

        Args:
            owner_id: Owning user ID
            idea_id: Optional UUID of an existing idea this session refines

        Returns:
            The stored session

        Raises:
            ValueError: If idea_id is not a UUID
            StorageError: If the store fails
        """
        if idea_id is not None:
            idea_id = str(uuid.UUID(idea_id))

        record = DiscoverySessionRecord(
            id=str(uuid.uuid4()),
            idea_id=idea_id,
            owner_id=owner_id,
            messages=[Message(role=MessageRole.ASSISTANT, content=self.prompts.welcome_message)],
            current_phase=DiscoveryPhase.VISION,
            status=SessionStatus.ACTIVE,
        )
        created = await self.store.create(record)
        logger.info("discovery_session_started", session_id=created.id, owner_id=owner_id, idea_id=idea_id)
        return created

    async def get_session(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        """Fetch a session. Raises SessionNotFoundError if missing."""
        return await self.store.get(session_id, owner_id=owner_id)

    async def list_active_sessions(self, owner_id: str) -> list[DiscoverySessionRecord]:
        """Active sessions for an owner, newest first."""
        return await self.store.list_for_owner(owner_id, status=SessionStatus.ACTIVE)

    async def send_message(
        self,
        session_id: str,
        user_text: str,
        model_config: ModelConfig | None = None,
        owner_id: str | None = None,
    ) -> TurnResult:
        """Process one user turn (see ConversationOrchestrator.send_message)."""
        return await self.orchestrator.send_message(
            session_id, user_text, model_config=model_config, owner_id=owner_id
        )

    async def skip_session(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        """Mark a session skipped without touching its transcript or phase.

        Re-skipping is a no-op. Completed sessions cannot be skipped.

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionNotActiveError: If the session is already completed
        """
        async with self.orchestrator.serialized(session_id):
            session = await self.store.get(session_id, owner_id=owner_id)

            if session.status == SessionStatus.SKIPPED:
                return session
            if session.status == SessionStatus.COMPLETED:
                raise SessionNotActiveError(session_id, session.status.value)

            updated = await self.store.update(
                session_id,
                {"status": SessionStatus.SKIPPED, "completed_at": datetime.now(UTC)},
                expected_version=session.version,
                owner_id=owner_id,
            )

        logger.info("discovery_session_skipped", session_id=session_id, phase=updated.current_phase.value)
        return updated

    async def force_advance_phase(
        self,
        session_id: str,
        target_phase: DiscoveryPhase,
        owner_id: str | None = None,
    ) -> DiscoverySessionRecord:
        """Set the phase directly, bypassing transition detection.

        Status and synthesis fields are left alone, so forcing COMPLETE does not
        complete the session. Synthesis only runs on a turn sent while in SYNTHESIS
        or through force_synthesis.

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionNotActiveError: If the session is completed or skipped
        """
        async with self.orchestrator.serialized(session_id):
            session = await self.store.get(session_id, owner_id=owner_id)
            ensure_active(session)

            updated = await self.store.update(
                session_id,
                {"current_phase": target_phase},
                expected_version=session.version,
                owner_id=owner_id,
            )

        logger.info(
            "discovery_phase_forced",
            session_id=session_id,
            from_phase=session.current_phase.value,
            to_phase=target_phase.value,
        )
        return updated

    async def resume_refinement(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        """Go back to refining the idea: phase resets to VISION and the session is active.

        A completed session is reopened and its synthesis discarded; the transcript
        is kept so the conversation picks up where it left off.

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionNotActiveError: If the session was skipped
        """
        async with self.orchestrator.serialized(session_id):
            session = await self.store.get(session_id, owner_id=owner_id)
            if session.status == SessionStatus.SKIPPED:
                raise SessionNotActiveError(session_id, session.status.value)

            patch: dict = {"current_phase": DiscoveryPhase.VISION}
            if session.status == SessionStatus.COMPLETED:
                patch.update(
                    status=SessionStatus.ACTIVE,
                    founder_fit=None,
                    refined_prompt=None,
                    completed_at=None,
                )

            updated = await self.store.update(
                session_id,
                patch,
                expected_version=session.version,
                owner_id=owner_id,
            )

        logger.info(
            "discovery_refinement_resumed",
            session_id=session_id,
            from_phase=session.current_phase.value,
            reopened=session.status == SessionStatus.COMPLETED,
        )
        return updated

    async def force_synthesis(
        self,
        session_id: str,
        model_config: ModelConfig | None = None,
        owner_id: str | None = None,
    ) -> SynthesisOutput:
        """Synthesize the transcript so far in a single model call.

        Returns:
            The validated SynthesisOutput (the session is now completed)

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionNotActiveError: If the session is completed or skipped
            ModelRequestFailedError: If the model call fails
            SynthesisFailedError: If the reply is not a valid synthesis (nothing is persisted)
        """
        log = logger.bind(session_id=session_id)

        async with self.orchestrator.serialized(session_id):
            session = await self.store.get(session_id, owner_id=owner_id)
            ensure_active(session)

            try:
                synthesis = await self.orchestrator.synthesize_transcript(session, model_config=model_config)
            except SynthesisParseError as exc:
                log.warning("forced_synthesis_failed", reason=str(exc))
                raise SynthesisFailedError(f"Failed to generate synthesis: {exc}") from exc

            await self.store.update(
                session_id,
                completion_patch(synthesis),
                expected_version=session.version,
                owner_id=owner_id,
            )

        log.info("discovery_synthesis_forced", message_count=session.message_count)
        return synthesis

    async def get_session_summary(self, session_id: str, owner_id: str | None = None) -> SessionSummary | None:
        """Synthesis summary, or None unless the session is completed."""
        session = await self.store.get(session_id, owner_id=owner_id)
        if session.status != SessionStatus.COMPLETED or session.refined_prompt is None:
            return None

        synthesis = session.refined_prompt
        return SessionSummary(
            tldr=synthesis.tldr,
            full_prompt=synthesis.full_prompt,
            founder_fit=session.founder_fit or synthesis.founder_fit,
            message_count=session.message_count,
        )

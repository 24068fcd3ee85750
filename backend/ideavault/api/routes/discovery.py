"""Discovery API routes: session lifecycle and conversation endpoints."""

from fastapi import APIRouter, Depends, Header, HTTPException

from ideavault.agent.model_client import ModelClient
from ideavault.core.config import get_settings
from ideavault.core.locking import SessionLock
from ideavault.db.base import get_session_factory
from ideavault.db.redis import get_redis
from ideavault.db.session_store import SessionStore, SqlSessionStore
from ideavault.schemas.discovery import (
    AdvancePhaseRequest,
    DiscoverySessionResponse,
    ForceSynthesisRequest,
    SendMessageRequest,
    SendMessageResponse,
    SessionSummary,
    StartDiscoveryRequest,
    StartDiscoveryResponse,
    SynthesisOutput,
)
from ideavault.services.discovery_service import DiscoveryService

router = APIRouter()


def get_model_client() -> ModelClient:
    """Dependency that provides the ModelClient.

    Returns the process-wide AnthropicModelClient when ANTHROPIC_API_KEY is set.
    Falls back to ModelClientFake for local dev without an API key.
    Override this dependency in tests via app.dependency_overrides.
    """
    settings = get_settings()

    if settings.anthropic_api_key:
        from ideavault.agent.model_client_anthropic import get_shared_model_client

        return get_shared_model_client(settings)
    else:
        from ideavault.agent.model_client_fake import ModelClientFake

        return ModelClientFake()


def get_session_store() -> SessionStore:
    return SqlSessionStore(get_session_factory())


def get_session_lock() -> SessionLock | None:
    settings = get_settings()
    return SessionLock(
        get_redis(),
        ttl=settings.session_lock_ttl_seconds,
        wait_timeout=settings.session_lock_wait_seconds,
    )


async def require_owner(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> str:
    """Owner identity forwarded by the upstream authentication layer."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id.strip()


def get_discovery_service(
    model_client: ModelClient = Depends(get_model_client),
    store: SessionStore = Depends(get_session_store),
    session_lock: SessionLock | None = Depends(get_session_lock),
) -> DiscoveryService:
    return DiscoveryService(model_client, store, session_lock=session_lock)


@router.post("/sessions", response_model=StartDiscoveryResponse)
async def start_session(
    request: StartDiscoveryRequest,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Start a discovery session seeded with the welcome message."""
    session = await service.start_session(owner_id, idea_id=request.idea_id)
    return StartDiscoveryResponse(
        session=DiscoverySessionResponse.from_record(session),
        welcome_message=session.messages[0].content,
        seed_idea=request.seed_idea,
    )


@router.get("/sessions", response_model=list[DiscoverySessionResponse])
async def list_active_sessions(
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """List the caller's active sessions, newest first."""
    sessions = await service.list_active_sessions(owner_id)
    return [DiscoverySessionResponse.from_record(s) for s in sessions]


@router.get("/sessions/{session_id}", response_model=DiscoverySessionResponse)
async def get_session(
    session_id: str,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Get a session (for resumption)."""
    session = await service.get_session(session_id, owner_id=owner_id)
    return DiscoverySessionResponse.from_record(session)


@router.post("/sessions/{session_id}/messages", response_model=SendMessageResponse)
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Send one user turn and return the assistant's reply.

    Raises:
        HTTPException(404): Session not found for this user
        HTTPException(409): Session not active, or another turn is in flight
        HTTPException(502): Model provider failed (nothing was saved)
    """
    result = await service.send_message(
        session_id,
        request.content,
        model_config=request.model_config_override,
        owner_id=owner_id,
    )
    return SendMessageResponse(
        response=result.response_text,
        current_phase=result.new_phase,
        is_complete=result.is_complete,
        synthesis_output=result.synthesis_output,
        message_count=result.message_count,
    )


@router.post("/sessions/{session_id}/skip", response_model=DiscoverySessionResponse)
async def skip_session(
    session_id: str,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Skip discovery and go straight to research."""
    session = await service.skip_session(session_id, owner_id=owner_id)
    return DiscoverySessionResponse.from_record(session)


@router.post("/sessions/{session_id}/advance", response_model=DiscoverySessionResponse)
async def advance_phase(
    session_id: str,
    request: AdvancePhaseRequest,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Force the session into a phase."""
    session = await service.force_advance_phase(session_id, request.target_phase, owner_id=owner_id)
    return DiscoverySessionResponse.from_record(session)


@router.post("/sessions/{session_id}/refine", response_model=DiscoverySessionResponse)
async def resume_refinement(
    session_id: str,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Return to the vision phase to keep refining the idea."""
    session = await service.resume_refinement(session_id, owner_id=owner_id)
    return DiscoverySessionResponse.from_record(session)


@router.post("/sessions/{session_id}/synthesize", response_model=SynthesisOutput)
async def force_synthesis(
    session_id: str,
    request: ForceSynthesisRequest | None = None,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Generate the research prompt now from the conversation so far."""
    model_config = request.model_config_override if request else None
    return await service.force_synthesis(session_id, model_config=model_config, owner_id=owner_id)


@router.get("/sessions/{session_id}/summary", response_model=SessionSummary)
async def get_session_summary(
    session_id: str,
    owner_id: str = Depends(require_owner),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """TL;DR, research prompt and founder-fit of a completed session."""
    summary = await service.get_session_summary(session_id, owner_id=owner_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="No completed synthesis for this session")
    return summary

"""Session store: persistence boundary for discovery sessions.

The services only see ``DiscoverySessionRecord`` snapshots; ORM rows never
leave this module. Every update is a compare-and-set on ``version`` so a
stale writer fails with ConcurrencyConflictError instead of silently
overwriting a newer transcript.
"""

import uuid
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ideavault.core.exceptions import ConcurrencyConflictError, SessionNotFoundError, StorageError
from ideavault.db.models.discovery_session import DiscoverySession
from ideavault.discovery.phases import DiscoveryPhase, SessionStatus
from ideavault.schemas.discovery import (
    DiscoverySessionRecord,
    FounderFit,
    Message,
    SynthesisOutput,
)

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"messages", "current_phase", "founder_fit", "refined_prompt", "status", "completed_at"}
)


@runtime_checkable
class SessionStore(Protocol):
    """Single-record store keyed by session id."""

    async def create(self, record: DiscoverySessionRecord) -> DiscoverySessionRecord:
        """Insert a new session. Raises StorageError on failure."""
        ...

    async def get(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        """Fetch a session, optionally scoped to its owner.

        Raises:
            SessionNotFoundError: If no such session exists for the owner
            StorageError: On store failure
        """
        ...

    async def update(
        self,
        session_id: str,
        patch: Mapping[str, Any],
        expected_version: int,
        owner_id: str | None = None,
    ) -> DiscoverySessionRecord:
        """Apply ``patch`` if the stored version still equals ``expected_version``.

        Raises:
            SessionNotFoundError: If no such session exists for the owner
            ConcurrencyConflictError: If the session changed since it was read
            StorageError: On store failure
        """
        ...

    async def list_for_owner(
        self, owner_id: str, status: SessionStatus | None = None
    ) -> list[DiscoverySessionRecord]:
        """List an owner's sessions, newest first."""
        ...


def serialize_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Convert domain values in a patch into their stored JSON-compatible form."""
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)}")

    values: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "messages":
            values[key] = [m.model_dump(mode="json") for m in value]
        elif key in ("founder_fit", "refined_prompt"):
            values[key] = value.model_dump(mode="json", by_alias=True) if value is not None else None
        elif key in ("current_phase", "status"):
            values[key] = value.value
        else:
            values[key] = value
    return values


def row_to_record(row: DiscoverySession) -> DiscoverySessionRecord:
    """Build an immutable snapshot from an ORM row."""
    return DiscoverySessionRecord(
        id=str(row.id),
        idea_id=str(row.idea_id) if row.idea_id else None,
        owner_id=row.owner_id,
        messages=[Message.model_validate(m) for m in row.messages],
        current_phase=DiscoveryPhase(row.current_phase),
        founder_fit=FounderFit.model_validate(row.founder_fit) if row.founder_fit else None,
        refined_prompt=SynthesisOutput.model_validate(row.refined_prompt) if row.refined_prompt else None,
        status=SessionStatus(row.status),
        version=row.version,
        created_at=row.created_at,
        completed_at=row.completed_at,
    )


def _parse_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SqlSessionStore:
    """SessionStore backed by PostgreSQL through SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, record: DiscoverySessionRecord) -> DiscoverySessionRecord:
        row = DiscoverySession(
            id=uuid.UUID(record.id),
            owner_id=record.owner_id,
            idea_id=uuid.UUID(record.idea_id) if record.idea_id else None,
            messages=[m.model_dump(mode="json") for m in record.messages],
            current_phase=record.current_phase.value,
            status=record.status.value,
            version=record.version,
            created_at=record.created_at,
        )
        try:
            async with self.session_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
                return row_to_record(row)
        except SQLAlchemyError as exc:
            logger.error("session_store_create_failed", session_id=record.id, error=str(exc))
            raise StorageError("Failed to create discovery session") from exc

    async def get(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            raise SessionNotFoundError(session_id)

        stmt = select(DiscoverySession).where(DiscoverySession.id == session_uuid)
        if owner_id is not None:
            stmt = stmt.where(DiscoverySession.owner_id == owner_id)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error("session_store_get_failed", session_id=session_id, error=str(exc))
            raise StorageError("Failed to load discovery session") from exc

        if row is None:
            raise SessionNotFoundError(session_id)
        return row_to_record(row)

    async def update(
        self,
        session_id: str,
        patch: Mapping[str, Any],
        expected_version: int,
        owner_id: str | None = None,
    ) -> DiscoverySessionRecord:
        session_uuid = _parse_uuid(session_id)
        if session_uuid is None:
            raise SessionNotFoundError(session_id)

        values = serialize_patch(patch)
        conditions = [DiscoverySession.id == session_uuid]
        if owner_id is not None:
            conditions.append(DiscoverySession.owner_id == owner_id)

        stmt = (
            update(DiscoverySession)
            .where(*conditions, DiscoverySession.version == expected_version)
            .values(**values, version=expected_version + 1)
            .returning(DiscoverySession)
            .execution_options(synchronize_session=False)
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.scalar_one_or_none()
                if row is None:
                    exists = await session.execute(select(DiscoverySession.id).where(*conditions))
                    found = exists.scalar_one_or_none() is not None
                    await session.rollback()
                    if not found:
                        raise SessionNotFoundError(session_id)
                    raise ConcurrencyConflictError(session_id, "session was modified concurrently")
                record = row_to_record(row)
                await session.commit()
                return record
        except SQLAlchemyError as exc:
            logger.error("session_store_update_failed", session_id=session_id, error=str(exc))
            raise StorageError("Failed to update discovery session") from exc

    async def list_for_owner(
        self, owner_id: str, status: SessionStatus | None = None
    ) -> list[DiscoverySessionRecord]:
        stmt = select(DiscoverySession).where(DiscoverySession.owner_id == owner_id)
        if status is not None:
            stmt = stmt.where(DiscoverySession.status == status.value)
        stmt = stmt.order_by(DiscoverySession.created_at.desc())

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [row_to_record(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("session_store_list_failed", owner_id=owner_id, error=str(exc))
            raise StorageError("Failed to list discovery sessions") from exc

"""SessionStoreFake: in-memory SessionStore test double.

Same contract as SqlSessionStore (owner scoping, version compare-and-set),
plus switches to simulate store outages.
"""

from collections.abc import Mapping
from typing import Any

from ideavault.core.exceptions import ConcurrencyConflictError, SessionNotFoundError, StorageError
from ideavault.db.session_store import UPDATABLE_FIELDS
from ideavault.discovery.phases import SessionStatus
from ideavault.schemas.discovery import DiscoverySessionRecord


class SessionStoreFake:
    """Dict-backed SessionStore. Returns deep copies so callers never share state."""

    def __init__(self):
        self._records: dict[str, DiscoverySessionRecord] = {}
        self.fail_creates = False
        self.fail_updates = False
        self.update_calls = 0

    async def create(self, record: DiscoverySessionRecord) -> DiscoverySessionRecord:
        if self.fail_creates:
            raise StorageError("Failed to create discovery session")
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def get(self, session_id: str, owner_id: str | None = None) -> DiscoverySessionRecord:
        record = self._records.get(session_id)
        if record is None or (owner_id is not None and record.owner_id != owner_id):
            raise SessionNotFoundError(session_id)
        return record.model_copy(deep=True)

    async def update(
        self,
        session_id: str,
        patch: Mapping[str, Any],
        expected_version: int,
        owner_id: str | None = None,
    ) -> DiscoverySessionRecord:
        self.update_calls += 1
        if self.fail_updates:
            raise StorageError("Failed to update discovery session")

        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")

        current = self._records.get(session_id)
        if current is None or (owner_id is not None and current.owner_id != owner_id):
            raise SessionNotFoundError(session_id)
        if current.version != expected_version:
            raise ConcurrencyConflictError(session_id, "session was modified concurrently")

        updated = current.model_copy(update={**patch, "version": current.version + 1})
        self._records[session_id] = updated.model_copy(deep=True)
        return updated.model_copy(deep=True)

    async def list_for_owner(
        self, owner_id: str, status: SessionStatus | None = None
    ) -> list[DiscoverySessionRecord]:
        records = [
            r for r in self._records.values()
            if r.owner_id == owner_id and (status is None or r.status == status)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

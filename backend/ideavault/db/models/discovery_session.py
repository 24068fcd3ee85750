"""DiscoverySession model: JSON transcript plus phase/status columns."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID

from ideavault.db.base import Base


class DiscoverySession(Base):
    __tablename__ = "discovery_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(String(255), nullable=False, index=True)
    idea_id = Column(UUID(as_uuid=True), nullable=True, index=True)  # ideas live outside this service

    # Conversation state
    status = Column(String(20), nullable=False, default="active")  # active, completed, skipped
    current_phase = Column(String(20), nullable=False, default="vision")
    messages = Column(JSON, nullable=False)  # [{role, content, timestamp}]

    # Synthesis output (camelCase JSON), set together when synthesis succeeds
    founder_fit = Column(JSON, nullable=True)
    refined_prompt = Column(JSON, nullable=True)

    # Optimistic concurrency token, bumped on every update
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)

"""Discovery phase, status and role enums.

Pure domain logic with no external dependencies.
"""
from enum import Enum


class DiscoveryPhase(str, Enum):
    """Stage of the discovery conversation. Ordering is defined by PHASE_ORDER."""

    VISION = "vision"
    GAPS = "gaps"
    FOUNDER_FIT = "founder_fit"
    SYNTHESIS = "synthesis"
    COMPLETE = "complete"

    @property
    def rank(self) -> int:
        """Position in the total order (VISION=0 ... COMPLETE=4)."""
        return PHASE_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is DiscoveryPhase.COMPLETE

    def next_phase(self) -> "DiscoveryPhase":
        """Return the following phase; COMPLETE is its own successor."""
        if self.is_terminal:
            return self
        return PHASE_ORDER[self.rank + 1]

    def __lt__(self, other):
        if not isinstance(other, DiscoveryPhase):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, DiscoveryPhase):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, DiscoveryPhase):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, DiscoveryPhase):
            return NotImplemented
        return self.rank >= other.rank


# Explicit total order. Do not rely on declaration order.
PHASE_ORDER: tuple[DiscoveryPhase, ...] = (
    DiscoveryPhase.VISION,
    DiscoveryPhase.GAPS,
    DiscoveryPhase.FOUNDER_FIT,
    DiscoveryPhase.SYNTHESIS,
    DiscoveryPhase.COMPLETE,
)

# Phases whose exit is detected from free-text trigger phrases.
KEYWORD_DRIVEN_PHASES: frozenset[DiscoveryPhase] = frozenset(
    {DiscoveryPhase.VISION, DiscoveryPhase.GAPS, DiscoveryPhase.FOUNDER_FIT}
)


class SessionStatus(str, Enum):
    """Session lifecycle status, orthogonal to phase."""

    ACTIVE = "active"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

"""Re-export all models so Base.metadata sees them."""

from ideavault.db.models.discovery_session import DiscoverySession

__all__ = [
    "DiscoverySession",
]

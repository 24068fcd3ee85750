"""Database package: shared engine, session factory and Redis client."""

from ideavault.db.base import Base, close_db, get_session_factory, init_db, ping_db
from ideavault.db.redis import close_redis, get_redis, init_redis, ping_redis

__all__ = [
    "Base",
    "close_db",
    "close_redis",
    "get_redis",
    "get_session_factory",
    "init_db",
    "init_redis",
    "ping_db",
    "ping_redis",
]

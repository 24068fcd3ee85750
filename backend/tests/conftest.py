"""Shared test fixtures for all test groups."""

import pytest
from fakeredis import FakeAsyncRedis

from ideavault.agent.model_client_fake import ModelClientFake
from ideavault.core.locking import SessionLock
from ideavault.db.session_store_fake import SessionStoreFake
from ideavault.services.discovery_service import DiscoveryService

OWNER_ID = "user_a"


@pytest.fixture
def model_fake():
    """Fresh ModelClientFake with happy_path scenario (default)."""
    return ModelClientFake(scenario="happy_path")


@pytest.fixture
def model_fake_failing():
    """ModelClientFake with llm_failure scenario."""
    return ModelClientFake(scenario="llm_failure")


@pytest.fixture
def model_fake_malformed():
    """ModelClientFake with malformed_synthesis scenario."""
    return ModelClientFake(scenario="malformed_synthesis")


@pytest.fixture
def store_fake():
    return SessionStoreFake()


@pytest.fixture
async def redis():
    """Create a fake Redis instance for testing."""
    fake_redis = FakeAsyncRedis(decode_responses=True)
    yield fake_redis
    await fake_redis.flushall()
    await fake_redis.aclose()


@pytest.fixture
def session_lock(redis):
    return SessionLock(redis, ttl=30, wait_timeout=0.5)


@pytest.fixture
def service(model_fake, store_fake, session_lock):
    """DiscoveryService wired to fakes (happy path, fake Redis lease)."""
    return DiscoveryService(model_fake, store_fake, session_lock=session_lock)


@pytest.fixture
async def started_session(service):
    """An active session in the vision phase, owned by OWNER_ID."""
    return await service.start_session(OWNER_ID)

"""API-specific test fixtures.

The app is built without the production lifespan, so no database or Redis
is needed; the store, model client and lock dependencies are overridden
with in-memory fakes.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ideavault.api.routes import api_router
from ideavault.api.routes.discovery import get_model_client, get_session_lock, get_session_store
from ideavault.main import register_exception_handlers
from ideavault.middleware.correlation import setup_correlation_middleware


@pytest.fixture
def api_app(model_fake, store_fake) -> FastAPI:
    app = FastAPI(title="Ideas Vault - Test Client")
    setup_correlation_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    app.dependency_overrides[get_model_client] = lambda: model_fake
    app.dependency_overrides[get_session_store] = lambda: store_fake
    app.dependency_overrides[get_session_lock] = lambda: None
    return app


@pytest.fixture
def api_client(api_app):
    with TestClient(api_app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def user_a_headers():
    return {"X-User-Id": "user_a"}


@pytest.fixture
def user_b_headers():
    return {"X-User-Id": "user_b"}

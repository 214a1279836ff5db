import time

import jwt
import pytest
from fastapi.testclient import TestClient

from buildscope.config import Settings
from buildscope.dependencies import (
    get_current_user,
    get_llm_factory,
    get_optional_project_store,
    get_settings,
    get_supabase,
)
from buildscope.main import app
from buildscope.services.project_store import ProjectStore
from tests.fakes import FakeChatModel, FakeSupabase

TEST_JWT_SECRET = "test-jwt-secret-for-unit-tests"
TEST_USER_ID = "test-user-00000000-0000-0000-0000-000000000001"
OTHER_USER_ID = "other-user-00000000-0000-0000-0000-000000000002"


def make_token(
    user_id: str = TEST_USER_ID,
    *,
    secret: str = TEST_JWT_SECRET,
    algorithm: str = "HS256",
    audience: str = "authenticated",
    expires_in: int = 3600,
    extra_claims: dict | None = None,
) -> str:
    """Generate a Supabase-style JWT for testing."""
    payload = {
        "sub": user_id,
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "iat": int(time.time()),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, secret, algorithm=algorithm)


def make_settings(**overrides) -> Settings:
    values = {
        "supabase_url": "http://supabase.test",
        "supabase_service_key": "service-key",
        "supabase_jwt_secret": TEST_JWT_SECRET,
        "anthropic_api_key": "test-anthropic-key",
        "upload_backoff_base": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _reset_sse_app_status():
    # sse-starlette caches an exit event on a class attribute; each TestClient
    # runs its own event loop.
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def fake_llm() -> FakeChatModel:
    return FakeChatModel()


@pytest.fixture
def client(settings, supabase, fake_llm):
    """Test client as TEST_USER_ID, backed by the in-memory Supabase and chat model."""

    async def _override_user():
        return TEST_USER_ID

    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_optional_project_store] = lambda: ProjectStore(supabase)
    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_llm_factory] = lambda: (lambda _settings: fake_llm)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def token_client(settings, supabase):
    """Test client that authenticates through real JWT verification."""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_supabase] = lambda: supabase
    app.dependency_overrides[get_optional_project_store] = lambda: ProjectStore(supabase)
    yield TestClient(app)
    app.dependency_overrides.clear()

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from typing import AsyncIterator
from unittest.mock import AsyncMock
from redis.exceptions import RedisError

from educrm.backend.main import app
from educrm.backend.api.dependencies import get_db_client, get_redis_client


# ----- Fixtures -----

@pytest.fixture
def mock_db_client():
    return AsyncMock()


@pytest.fixture
def mock_redis_client():
    client = AsyncMock()
    client.get_profile.return_value = None
    client.is_session_revoked.return_value = False
    return client


@pytest_asyncio.fixture
async def http_client(mock_db_client, mock_redis_client) -> AsyncIterator[AsyncClient]:
    """In-process client with the database and Redis clients replaced by mocks."""
    app.dependency_overrides[get_db_client] = lambda: mock_db_client
    app.dependency_overrides[get_redis_client] = lambda: mock_redis_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ----- Scenarios -----

@pytest.mark.asyncio
class TestMe:

    async def test_me_returns_profile_capabilities_and_home_route(self, http_client, mock_db_client, mock_redis_client, teacher_profile, make_token):
        mock_db_client.get_user_profile.return_value = teacher_profile

        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))

        assert response.status_code == 200
        body = response.json()
        assert body["profile"]["id"] == str(teacher_profile.id)
        assert body["profile"]["user_type"] == "teacher"
        assert "attendance:mark" in body["capabilities"]
        assert body["home_route"] == "/teacher"
        mock_redis_client.save_profile.assert_awaited_once()

    async def test_cached_profile_skips_database(self, http_client, mock_db_client, mock_redis_client, teacher_profile, make_token):
        mock_redis_client.get_profile.return_value = teacher_profile

        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))

        assert response.status_code == 200
        mock_db_client.get_user_profile.assert_not_called()

    async def test_profile_cache_outage_falls_back_to_database(self, http_client, mock_db_client, mock_redis_client, teacher_profile, make_token):
        mock_redis_client.get_profile.side_effect = RedisError("down")
        mock_redis_client.save_profile.side_effect = RedisError("down")
        mock_db_client.get_user_profile.return_value = teacher_profile

        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))
        assert response.status_code == 200

    async def test_missing_token(self, http_client):
        response = await http_client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    async def test_expired_token(self, http_client, teacher_profile, make_token):
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id, expires_in=-60)))
        assert response.status_code == 401

    async def test_wrong_audience(self, http_client, teacher_profile, make_token):
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id, audience="other")))
        assert response.status_code == 401

    async def test_tampered_token(self, http_client, teacher_profile, make_token):
        token = make_token(teacher_profile.id)
        response = await http_client.get("/api/v1/auth/me", headers=bearer(token[:-4] + "abcd"))
        assert response.status_code == 401

    async def test_revoked_session(self, http_client, mock_redis_client, teacher_profile, make_token):
        mock_redis_client.is_session_revoked.return_value = True
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))
        assert response.status_code == 401

    async def test_revocation_store_unavailable(self, http_client, mock_redis_client, teacher_profile, make_token):
        mock_redis_client.is_session_revoked.side_effect = RedisError("down")
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))
        assert response.status_code == 503

    async def test_unknown_profile(self, http_client, mock_db_client, teacher_profile, make_token):
        mock_db_client.get_user_profile.return_value = None
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(teacher_profile.id)))
        assert response.status_code == 404
        assert response.json() == {"error": "User profile not found"}

    async def test_inactive_profile(self, http_client, mock_db_client, make_profile, make_token):
        inactive = make_profile("teacher", is_active=False)
        mock_db_client.get_user_profile.return_value = inactive
        response = await http_client.get("/api/v1/auth/me", headers=bearer(make_token(inactive.id)))
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_logout_revokes_session_until_token_expiry(http_client, mock_db_client, mock_redis_client, teacher_profile, make_token):
    mock_db_client.get_user_profile.return_value = teacher_profile

    response = await http_client.post("/api/v1/auth/logout", headers=bearer(make_token(teacher_profile.id, session_id="s-42")))

    assert response.status_code == 204
    revoked, = mock_redis_client.revoke_session.await_args.args
    assert revoked.session_id == "s-42"
    assert revoked.user_id == teacher_profile.id
    assert 3500 < mock_redis_client.revoke_session.await_args.kwargs["ttl"] <= 3600
    mock_redis_client.delete_profile.assert_awaited_once_with(teacher_profile.id)


@pytest.mark.asyncio
async def test_health(http_client):
    response = await http_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

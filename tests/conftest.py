# tests/conftest.py
import asyncio
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone

# Settings are read once at import time, so the test values must be in place first.
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"

import jwt
import pytest

from educrm.backend.models.db_models import UserProfile

if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def school_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_profile(school_id):
    """Builds profiles of any role, all in the same school unless told otherwise."""
    def _make(user_type: str = "teacher", **overrides) -> UserProfile:
        data = {
            "id": uuid.uuid4(),
            "school_id": school_id,
            "email": f"{user_type}-{uuid.uuid4().hex[:6]}@example.com",
            "first_name": "Test",
            "last_name": user_type.title(),
            "user_type": user_type,
        }
        data.update(overrides)
        return UserProfile(**data)
    return _make


@pytest.fixture
def teacher_profile(make_profile) -> UserProfile:
    return make_profile("teacher", first_name="Ada", last_name="Lovelace")


@pytest.fixture
def admin_profile(make_profile) -> UserProfile:
    return make_profile("admin")


@pytest.fixture
def make_token():
    """Signs access tokens the way the hosted auth provider does."""
    from educrm.backend.config.config import settings

    def _make(sub, session_id: str = "session-1", expires_in: int = 3600, audience: str = "authenticated", **claims) -> str:
        payload = {
            "sub": str(sub),
            "aud": audience,
            "session_id": session_id,
            "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            **claims,
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return _make

import logging
from typing import Optional
from uuid import UUID
import redis.asyncio as redis
from datetime import datetime, timezone

from ..models.db_models import UserProfile, School
from ..models.redis_models import ProfileCacheRedis, RevokedSessionRedis, SchoolCacheRedis

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Redis client for the profile cache, revoked sessions and tenant lookups.
    """

    def __init__(self, pool: redis.ConnectionPool):
        self._redis = redis.Redis(connection_pool=pool, decode_responses=True)

    # ===== Profile cache =====

    async def save_profile(self, profile: UserProfile, ttl: int):
        """Caches a caller's profile row for ttl seconds."""
        key = f"profiles:{profile.id}"
        cached = ProfileCacheRedis(profile=profile, cached_at=datetime.now(timezone.utc))
        await self._redis.set(key, cached.model_dump_json(), ex=ttl)

    async def get_profile(self, user_id: UUID) -> Optional[UserProfile]:
        key = f"profiles:{user_id}"
        cached_json = await self._redis.get(key)
        return ProfileCacheRedis.model_validate_json(cached_json).profile if cached_json else None

    async def delete_profile(self, user_id: UUID) -> int:
        key = f"profiles:{user_id}"
        return await self._redis.delete(key)

    # ===== Revoked sessions =====

    async def revoke_session(self, session: RevokedSessionRedis, ttl: int):
        """
        Remembers a logged-out session until its token would have expired anyway.
        """
        key = f"revoked_sessions:{session.session_id}"
        await self._redis.set(key, session.model_dump_json(), ex=max(ttl, 1))

    async def is_session_revoked(self, session_id: str) -> bool:
        key = f"revoked_sessions:{session_id}"
        return bool(await self._redis.exists(key))

    # ===== Tenant cache =====

    async def save_school(self, school: School, ttl: int):
        key = f"schools:slug:{school.slug}"
        cached = SchoolCacheRedis(school=school, cached_at=datetime.now(timezone.utc))
        await self._redis.set(key, cached.model_dump_json(), ex=ttl)

    async def get_school(self, slug: str) -> Optional[School]:
        key = f"schools:slug:{slug}"
        cached_json = await self._redis.get(key)
        return SchoolCacheRedis.model_validate_json(cached_json).school if cached_json else None

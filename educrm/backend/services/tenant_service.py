import logging
from typing import Optional

from redis.exceptions import RedisError

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..models.db_models import School
from ..modules.tenant import resolve_subdomain

logger = logging.getLogger(__name__)


class TenantService:
    """
    Resolves schools by slug or request host, with a Redis read-through cache.
    """
    def __init__(self, db_client: AsyncPostgresClient, redis_client: RedisClient):
        self.db_client = db_client
        self.redis_client = redis_client

    async def get_school_by_slug(self, slug: str) -> Optional[School]:
        try:
            cached = await self.redis_client.get_school(slug)
            if cached:
                return cached
        except RedisError:
            logger.warning(f"Tenant cache read failed for '{slug}', falling back to the database.", exc_info=True)

        school = await self.db_client.get_school_by_slug(slug)
        if school:
            try:
                await self.redis_client.save_school(school, ttl=settings.TENANT_CACHE_TTL_SECONDS)
            except RedisError:
                logger.warning(f"Could not cache school '{slug}'.", exc_info=True)
        return school

    async def resolve_current_tenant(self, hostname: Optional[str]) -> Optional[School]:
        slug = resolve_subdomain(hostname)
        if not slug:
            return None
        return await self.get_school_by_slug(slug)

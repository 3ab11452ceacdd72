#educrm/backend/api/dependencies.py
import logging
from typing import Optional

from fastapi import Request, Depends, HTTPException, status
import redis.asyncio as redis
import asyncpg

from ..db.redis_client import RedisClient
from ..db.db_client import AsyncPostgresClient
from ..services.attendance_service import AttendanceService
from ..services.notification_service import NotificationService
from ..services.tenant_service import TenantService

logger = logging.getLogger(__name__)


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Returns the Redis connection pool created in the application lifespan.
    """
    pool = getattr(request.app.state, "redis_pool", None)
    if pool is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cache is unavailable.")
    return pool


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Returns the PostgreSQL connection pool created in the application lifespan.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database is unavailable.")
    return pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)


def get_attendance_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> AttendanceService:
    """
    Builds a fresh AttendanceService for every request.

    The clients are cheap wrappers; the pools they share were created once at
    startup, so nothing here opens a connection by itself.
    """
    return AttendanceService(db_client=db_client)


def get_notification_service(db_client: AsyncPostgresClient = Depends(get_db_client)) -> NotificationService:
    return NotificationService(db_client=db_client)


def get_tenant_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    redis_client: RedisClient = Depends(get_redis_client)
) -> TenantService:
    return TenantService(db_client=db_client, redis_client=redis_client)


async def get_request_host(request: Request) -> Optional[str]:
    """
    Returns the host the client addressed, preferring proxy headers.
    X-Forwarded-Host may be a list ("a.example, proxy"); the leftmost entry wins.
    """
    for header_name in ["x-forwarded-host", "host"]:
        header = request.headers.get(header_name)
        if header:
            host = header.split(",")[0].strip()
            logger.debug(f"Resolved request host '{host}' from header '{header_name}'.")
            return host
    return request.url.hostname

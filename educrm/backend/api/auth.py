import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone
from typing import Optional
import jwt
from pydantic import ValidationError
from redis.exceptions import RedisError

from .schemas.user import TokenData, UserProfileResponse, MeResponse
from ..models.db_models import UserProfile
from ..models.redis_models import RevokedSessionRedis
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..config.config import settings
from ..modules.capabilities import get_capabilities_for_role, get_home_route
from .dependencies import get_db_client, get_redis_client
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
# Tokens are issued by the hosted auth provider; this service only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """Verifies signature, expiry and audience of an access token and returns its claims."""
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
        audience=settings.JWT_AUDIENCE,
    )


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    redis_client: RedisClient = Depends(get_redis_client)
) -> TokenData:
    """
    Decodes the bearer token, validates its claims with pydantic and rejects
    sessions that were logged out.
    """
    if credentials is None:
        raise _credentials_exception()

    try:
        payload = decode_access_token(credentials.credentials)
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        # Covers bad signatures and expired tokens as well as missing or malformed claims.
        logger.warning(f"Token validation error: {e}")
        raise _credentials_exception()

    if token_data.session_id:
        try:
            revoked = await redis_client.is_session_revoked(token_data.session_id)
        except RedisError:
            logger.error("Session store unavailable while checking token revocation.", exc_info=True)
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Session store is unavailable.")
        if revoked:
            logger.warning(f"User '{token_data.sub}' used a token of revoked session '{token_data.session_id}'.")
            raise _credentials_exception()

    return token_data


async def get_current_user(
    token_data: TokenData = Depends(get_token_data),
    db_client: AsyncPostgresClient = Depends(get_db_client),
    redis_client: RedisClient = Depends(get_redis_client)
) -> UserProfile:
    """
    Returns the caller's profile, read from the Redis cache when possible and
    from the database otherwise.
    """
    profile = None
    try:
        profile = await redis_client.get_profile(token_data.sub)
    except RedisError:
        logger.warning(f"Profile cache read failed for user '{token_data.sub}'.", exc_info=True)

    if profile is None:
        profile = await db_client.get_user_profile(token_data.sub)
        if profile is None:
            logger.warning(f"User '{token_data.sub}' has a valid token but no profile.")
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
        try:
            await redis_client.save_profile(profile, ttl=settings.PROFILE_CACHE_TTL_SECONDS)
        except RedisError:
            logger.warning(f"Could not cache profile of user '{token_data.sub}'.", exc_info=True)

    if not profile.is_active:
        logger.warning(f"Inactive user '{profile.id}' denied access.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")

    return profile


# --- API Endpoints ---

@router.get("/me", response_model=MeResponse)
@limiter.limit("120/minute")
async def read_me(request: Request, current_user: UserProfile = Depends(get_current_user)):
    """The caller's profile, capabilities and dashboard route."""
    return MeResponse(
        profile=UserProfileResponse.model_validate(current_user),
        capabilities=get_capabilities_for_role(current_user.user_type),
        home_route=get_home_route(current_user.user_type),
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    token_data: TokenData = Depends(get_token_data),
    current_user: UserProfile = Depends(get_current_user),
    redis_client: RedisClient = Depends(get_redis_client)
):
    """Revokes the token's session until the token would expire and drops the cached profile."""
    logger.info(f"User '{current_user.id}' logging out.")
    now = datetime.now(timezone.utc)
    try:
        if token_data.session_id:
            expires_at = datetime.fromtimestamp(token_data.exp, tz=timezone.utc) if token_data.exp else None
            ttl = int((expires_at - now).total_seconds()) if expires_at else settings.PROFILE_CACHE_TTL_SECONDS
            await redis_client.revoke_session(
                RevokedSessionRedis(session_id=token_data.session_id, user_id=current_user.id, revoked_at=now, expires_at=expires_at),
                ttl=ttl,
            )
        await redis_client.delete_profile(current_user.id)
    except RedisError:
        logger.error(f"Error during logout for user '{current_user.id}'.", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred during logout.")

    logger.info(f"Session of user '{current_user.id}' revoked.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

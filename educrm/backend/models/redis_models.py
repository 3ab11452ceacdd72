from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from uuid import UUID
from .db_models import UserProfile, School


class ProfileCacheRedis(BaseModel):
    """
    A caller's profile as cached in Redis between requests.
    """
    profile: UserProfile = Field(..., description="The profile row from the database.")
    cached_at: datetime = Field(..., description="When the row was read from the database.")


class RevokedSessionRedis(BaseModel):
    """
    Marker stored for a session whose token was logged out before it expired.
    """
    session_id: str
    user_id: UUID
    revoked_at: datetime
    expires_at: Optional[datetime] = None


class SchoolCacheRedis(BaseModel):
    """
    A tenant lookup cached by slug.
    """
    school: School
    cached_at: datetime

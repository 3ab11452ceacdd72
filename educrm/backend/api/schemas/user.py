# educrm/backend/api/schemas/user.py
from pydantic import BaseModel, ConfigDict
from uuid import UUID
from typing import Optional, List, Dict, Any


class UserProfileResponse(BaseModel):
    id: UUID
    school_id: Optional[UUID] = None
    email: str
    first_name: str
    last_name: str
    user_type: str
    avatar_url: Optional[str] = None
    metadata: Dict[str, Any] = {}

    model_config = ConfigDict(from_attributes=True)


class MeResponse(BaseModel):
    """The caller's profile plus what the client needs to route and gate its UI."""
    profile: UserProfileResponse
    capabilities: List[str]
    home_route: str


# Internal representation of the access token claims
class TokenData(BaseModel):
    sub: UUID
    session_id: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None

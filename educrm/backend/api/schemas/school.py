from pydantic import BaseModel, ConfigDict
from uuid import UUID
from typing import Optional, List, Dict, Any


class SchoolResponse(BaseModel):
    """Public tenant data: enough for a client to brand itself before sign-in."""
    id: UUID
    slug: str
    name: str
    code: str
    country: str
    timezone: str
    logo_url: Optional[str] = None
    subscription_tier: str
    branding: Dict[str, Any]
    features: Dict[str, Any]
    settings: Dict[str, Any]

    model_config = ConfigDict(from_attributes=True)


class FeatureFlagsResponse(BaseModel):
    features: Dict[str, Any]
    enabled: List[str]

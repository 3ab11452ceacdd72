from pydantic import BaseModel, Field
from uuid import UUID
from typing import Optional, List, Dict, Any

from ...models.db_models import Notification, NotificationPreference


class NotificationCreateRequest(BaseModel):
    """Request model for fanning an event out to recipients."""
    event_type: str = Field(..., min_length=1, description="Key of a row in notif_events.")
    recipient_ids: List[UUID] = Field(..., description="Profile ids of the users to notify.")
    event_data: Dict[str, Any] = Field(default_factory=dict, description="Values substituted into {placeholders}.")
    school_id: Optional[UUID] = Field(None, description="Defaults to each recipient's own school.")


class SubscriptionUpdateRequest(BaseModel):
    # event_type is checked by the router so a missing value gets its own message.
    event_type: Optional[str] = None
    in_app_enabled: Optional[bool] = None
    push_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None


class NotificationListResponse(BaseModel):
    data: List[Notification]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    count: int


class NotificationCreateResponse(BaseModel):
    message: str
    data: List[Notification] = Field(default_factory=list)


class PreferenceListResponse(BaseModel):
    data: List[NotificationPreference]

import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from typing import Optional
from uuid import UUID

from ..services.notification_service import NotificationService
from ..services.errors import ServiceError
from ..models.db_models import UserProfile, NotificationSubscription
from .schemas.attendance import MessageResponse
from .schemas.notification import (
    NotificationCreateRequest,
    SubscriptionUpdateRequest,
    NotificationListResponse,
    UnreadCountResponse,
    NotificationCreateResponse,
    PreferenceListResponse,
)
from .auth import get_current_user
from .dependencies import get_notification_service
from .utilities.errors import to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# === Inbox ===

@router.get("", response_model=NotificationListResponse, summary="List the caller's notifications, newest first")
@limiter.limit("120/minute")
async def list_notifications(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status_filter: Optional[str] = Query(None, alias="status", description="pending, sent, delivered, failed or read."),
    event_type: Optional[str] = Query(None),
    user: UserProfile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    notifications, unread = await service.list_notifications(user, limit, offset, status_filter, event_type)
    return NotificationListResponse(data=notifications, unread_count=unread, total=len(notifications))


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Number of the caller's unread notifications")
@limiter.limit("120/minute")
async def get_unread_count(request: Request, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return UnreadCountResponse(count=await service.get_unread_count(user))


# Registered before "/{notification_id}/read" so the literal path wins.
@router.put("/mark-all-read", response_model=MessageResponse, summary="Mark every notification of the caller as read")
@limiter.limit("30/minute")
async def mark_all_read(request: Request, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    updated = await service.mark_all_as_read(user)
    logger.info(f"User '{user.id}' marked {updated} notifications as read.")
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=MessageResponse, summary="Mark one of the caller's notifications as read")
@limiter.limit("120/minute")
async def mark_read(request: Request, notification_id: UUID, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    try:
        await service.mark_as_read(user, notification_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Notification marked as read")


# === Dispatch ===

@router.post("/create", response_model=NotificationCreateResponse, status_code=status.HTTP_201_CREATED, summary="Fan an event out to its recipients")
@limiter.limit("30/minute")
async def create_notifications(request: Request, create_request: NotificationCreateRequest, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    try:
        created = await service.create_notifications(
            caller=user,
            event_type=create_request.event_type,
            recipient_ids=create_request.recipient_ids,
            event_data=create_request.event_data,
            school_id=create_request.school_id,
        )
    except ServiceError as e:
        raise to_http_exception(e)

    if not created:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"message": "No notifications created (no subscriptions or templates)", "data": []},
        )
    return NotificationCreateResponse(message=f"Created {len(created)} notifications", data=created)


# === Preferences ===

@router.get("/subscriptions", response_model=PreferenceListResponse, summary="Events available to the caller's role with their channel opt-ins")
@limiter.limit("60/minute")
async def get_subscriptions(request: Request, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return PreferenceListResponse(data=await service.get_preferences(user))


@router.post("/subscriptions", response_model=MessageResponse, summary="Create or change the caller's opt-ins for one event")
@limiter.limit("30/minute")
async def update_subscription(request: Request, update_request: SubscriptionUpdateRequest, user: UserProfile = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    if not update_request.event_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing event_type")

    # Flags left out of the body fall back to the defaults of a new subscription.
    flags = update_request.model_dump(exclude={"event_type"}, exclude_none=True)
    subscription = NotificationSubscription(user_id=user.id, event_type=update_request.event_type, **flags)
    try:
        await service.update_preference(user, subscription)
    except ServiceError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Subscription updated")

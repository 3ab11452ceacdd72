import logging
from typing import List, Optional, Dict, Any, Tuple
from uuid import UUID

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    UserProfile, NotificationEvent, NotificationSubscription, NotificationTemplate,
    NotificationPreference, NewNotification, Notification, NOTIFICATION_CHANNELS,
)
from ..modules.capabilities import role_has_capability
from ..modules.templating import render_template
from .errors import ServiceError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


def _affected_rows(status_tag: str) -> int:
    """Parses asyncpg's command tag, e.g. 'UPDATE 3' -> 3."""
    try:
        return int(status_tag.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


def resolve_channels(event: NotificationEvent, subscription: Optional[NotificationSubscription]) -> List[str]:
    """
    Decides which channels a recipient receives an event on.

    A stored subscription is authoritative: every channel whose flag is on, in
    the fixed order in_app, push, email, sms. Without one, the recipient gets
    in_app only if the event is enabled by default.
    in_app is not a guaranteed baseline: a subscriber who turned it off does not
    get it, so delivery always matches what the preferences endpoint shows.
    """
    if subscription is None:
        return ["in_app"] if event.default_enabled else []
    enabled = {
        "in_app": subscription.in_app_enabled,
        "push": subscription.push_enabled,
        "email": subscription.email_enabled,
        "sms": subscription.sms_enabled,
    }
    return [channel for channel in NOTIFICATION_CHANNELS if enabled[channel]]


def render_notification(
    template: NotificationTemplate,
    recipient: UserProfile,
    event_data: Dict[str, Any],
    school_id: Optional[UUID],
) -> NewNotification:
    """Materializes one pending queue row from a template and the event payload."""
    action_url = render_template(template.action_url_template, event_data) if template.action_url_template else None
    return NewNotification(
        school_id=school_id or recipient.school_id,
        user_id=recipient.id,
        event_type=template.event_type,
        channel=template.channel,
        title=render_template(template.title_template, event_data),
        body=render_template(template.body_template, event_data),
        action_url=action_url,
        icon=template.icon,
        priority=template.priority,
        event_data=event_data,
        status="pending",
    )


class NotificationService:
    """
    Inbox queries, subscription preferences and notification fan-out.
    Delivery itself is out of scope: dispatch stops at creating queue rows.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client

    # === Inbox ===

    async def list_notifications(
        self,
        user: UserProfile,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> Tuple[List[Notification], int]:
        """Returns one page of the user's notifications and their unread total."""
        notifications = await self.db_client.get_notifications(user.id, limit, offset, status, event_type)
        unread = await self.db_client.count_unread_notifications(user.id)
        return notifications, unread or 0

    async def get_unread_count(self, user: UserProfile) -> int:
        return await self.db_client.count_unread_notifications(user.id) or 0

    async def mark_as_read(self, user: UserProfile, notification_id: UUID) -> None:
        result = await self.db_client.mark_notification_read(notification_id, user.id)
        if _affected_rows(result) == 0:
            raise NotFoundError("Notification not found")

    async def mark_all_as_read(self, user: UserProfile) -> int:
        result = await self.db_client.mark_all_notifications_read(user.id)
        return _affected_rows(result)

    # === Dispatch ===

    async def create_notifications(
        self,
        caller: UserProfile,
        event_type: str,
        recipient_ids: List[UUID],
        event_data: Optional[Dict[str, Any]] = None,
        school_id: Optional[UUID] = None,
    ) -> List[Notification]:
        """
        Fans an event out to its recipients.

        For each recipient the enabled channels are resolved, the template for
        (event_type, channel, recipient role) is rendered with event_data, and one
        pending queue row is created per channel that has a template.
        Recipients without a profile, or in another school, are skipped.
        """
        if not role_has_capability(caller.user_type, "notifications:create"):
            logger.warning(f"User '{caller.id}' ({caller.user_type}) tried to create notifications.")
            raise AuthorizationError("Unauthorized: Cannot create notifications")

        crosses_tenants = caller.user_type == "super_admin"
        if school_id is not None and not crosses_tenants and school_id != caller.school_id:
            logger.warning(f"User '{caller.id}' tried to create notifications for school {school_id}.")
            raise AuthorizationError("Unauthorized: Cannot create notifications for another school")

        event = await self.db_client.get_notification_event(event_type)
        if not event:
            raise ServiceError("Invalid event type")

        event_data = event_data or {}
        templates: Dict[Tuple[str, str], Optional[NotificationTemplate]] = {}
        to_create: List[NewNotification] = []

        for recipient_id in dict.fromkeys(recipient_ids):
            recipient = await self.db_client.get_user_profile(recipient_id)
            if not recipient:
                logger.info(f"Skipping recipient {recipient_id}: no profile.")
                continue
            if not crosses_tenants and recipient.school_id != caller.school_id:
                logger.warning(f"Skipping recipient {recipient_id}: outside school {caller.school_id}.")
                continue

            subscription = await self.db_client.get_subscription(recipient.id, event_type)
            for channel in resolve_channels(event, subscription):
                key = (channel, recipient.user_type)
                if key not in templates:
                    templates[key] = await self.db_client.get_notification_template(event_type, channel, recipient.user_type)
                template = templates[key]
                if template:
                    to_create.append(render_notification(template, recipient, event_data, school_id))

        if not to_create:
            logger.info(f"Event '{event_type}' produced no notifications for {len(recipient_ids)} recipients.")
            return []

        try:
            created = await self.db_client.add_notifications(to_create)
        except Exception as e:
            logger.error(f"Error while queueing {len(to_create)} notifications for '{event_type}'.", exc_info=True)
            raise ServiceError("A database error occurred while creating notifications.") from e

        logger.info(f"Queued {len(created)} notifications for event '{event_type}'.")
        return created

    # === Preferences ===

    async def get_preferences(self, user: UserProfile) -> List[NotificationPreference]:
        """Every event offered to the user's role, merged with their stored opt-ins."""
        subscriptions = {s.event_type: s for s in await self.db_client.get_subscriptions(user.id)}
        events = await self.db_client.get_notification_events_for_role(user.user_type)

        preferences = []
        for event in events:
            subscription = subscriptions.get(event.event_type) or NotificationSubscription(user_id=user.id, event_type=event.event_type)
            preferences.append(NotificationPreference(
                event_type=event.event_type,
                event_name=event.event_name,
                event_description=event.event_description,
                in_app_enabled=subscription.in_app_enabled,
                push_enabled=subscription.push_enabled,
                email_enabled=subscription.email_enabled,
                sms_enabled=subscription.sms_enabled,
            ))
        return preferences

    async def update_preference(self, user: UserProfile, subscription: NotificationSubscription) -> None:
        if subscription.user_id != user.id:
            raise AuthorizationError("Unauthorized: Cannot change another user's preferences")
        try:
            await self.db_client.upsert_subscription(subscription)
        except Exception as e:
            logger.error(f"Error while saving preferences of user '{user.id}'.", exc_info=True)
            raise ServiceError("A database error occurred while updating the subscription.") from e

# educrm/backend/models/db_models.py

from pydantic import BaseModel, Field
from datetime import datetime, date, time
from typing import Optional, List, Dict, Any, Literal
from uuid import UUID

UserRole = Literal["admin", "teacher", "parent", "student", "staff", "it_admin", "super_admin"]
AttendanceStatus = Literal["present", "absent", "late", "excused"]
NotificationChannel = Literal["in_app", "push", "email", "sms"]
NotificationPriority = Literal["low", "normal", "high", "urgent"]
NotificationStatus = Literal["pending", "sent", "delivered", "failed", "read"]

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")
NOTIFICATION_CHANNELS = ("in_app", "push", "email", "sms")


class School(BaseModel):
    """
    Tenant root, mapping to the 'schools' table.
    """
    id: UUID
    slug: str = Field(..., description="Subdomain the tenant is served from")
    name: str
    code: str
    country: str = "US"
    timezone: str = "UTC"
    logo_url: Optional[str] = None
    is_active: bool = True
    subscription_tier: Literal["basic", "standard", "premium", "enterprise"] = "basic"
    subscription_status: Literal["active", "trial", "suspended", "cancelled"] = "active"
    branding: Dict[str, Any] = Field(default_factory=dict)
    features: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UserProfile(BaseModel):
    """
    One row per authenticated identity, mapping to the 'user_profiles' table.
    The id is the 'sub' claim of the caller's access token.
    """
    id: UUID
    school_id: Optional[UUID] = None
    email: str
    first_name: str = ""
    last_name: str = ""
    user_type: UserRole
    avatar_url: Optional[str] = None
    is_active: bool = True
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Teacher(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID


class Parent(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID


class Student(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    school_id: UUID
    student_code: str
    first_name: str
    last_name: str
    photo_url: Optional[str] = None


class SchoolClass(BaseModel):
    """
    A class taught by one teacher, mapping to the 'classes' table.
    """
    id: UUID
    school_id: UUID
    teacher_id: Optional[UUID] = None
    name: str
    code: str


class AttendanceRecord(BaseModel):
    """
    A student's mark for one class on one day, mapping to the 'attendance_records' table.
    (class_id, student_id, attendance_date) is unique.
    """
    id: UUID
    school_id: UUID
    class_id: UUID
    student_id: UUID
    attendance_date: date
    status: AttendanceStatus
    check_in_time: Optional[time] = None
    notes: Optional[str] = None
    marked_by: Optional[UUID] = None
    marked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClassSummary(BaseModel):
    name: str
    code: str


class AttendanceSummary(BaseModel):
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    total: int = 0


class AttendanceHistoryItem(AttendanceRecord):
    """Attendance record joined with the name and code of its class."""
    classes: ClassSummary


class RosterEntry(BaseModel):
    """An actively enrolled student and, if marked, their record for the requested day."""
    student_id: UUID
    student_code: str
    student_name: str
    student_photo: Optional[str] = None
    attendance_id: Optional[UUID] = None
    status: Optional[AttendanceStatus] = None
    check_in_time: Optional[time] = None
    notes: Optional[str] = None
    marked_at: Optional[datetime] = None


class NotificationEvent(BaseModel):
    """
    Entry of the event taxonomy, mapping to the 'notif_events' table.
    """
    id: UUID
    event_type: str
    event_name: str
    event_description: Optional[str] = None
    default_enabled: bool = True
    available_for_roles: List[str] = Field(default_factory=list)


class NotificationTemplate(BaseModel):
    """
    Message template for one (event_type, channel, role), mapping to the 'notif_templates' table.
    """
    id: UUID
    event_type: str
    channel: NotificationChannel
    role: str
    title_template: str
    body_template: str
    action_url_template: Optional[str] = None
    icon: Optional[str] = None
    priority: NotificationPriority = "normal"


class NotificationSubscription(BaseModel):
    """
    A user's channel opt-in for one event type, mapping to the 'notif_subscriptions' table.
    """
    user_id: UUID
    event_type: str
    in_app_enabled: bool = True
    push_enabled: bool = False
    email_enabled: bool = False
    sms_enabled: bool = False


class NotificationPreference(BaseModel):
    """An event available to the user's role merged with their stored opt-ins."""
    event_type: str
    event_name: str
    event_description: Optional[str] = None
    in_app_enabled: bool = True
    push_enabled: bool = False
    email_enabled: bool = False
    sms_enabled: bool = False


class NewNotification(BaseModel):
    """A queue row that has been rendered but not inserted yet."""
    school_id: Optional[UUID] = None
    user_id: UUID
    event_type: str
    channel: NotificationChannel
    title: str
    body: str
    action_url: Optional[str] = None
    icon: Optional[str] = None
    priority: NotificationPriority = "normal"
    event_data: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = "pending"


class Notification(NewNotification):
    """
    A stored queue row, mapping to the 'notif_queue' table.
    """
    id: UUID
    read_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

import json
import logging
from typing import List, Optional, Dict, Any
from uuid import UUID
import asyncpg
from datetime import datetime, date, timezone
from ..models.db_models import (
    School, UserProfile, Teacher, Parent, Student, SchoolClass,
    AttendanceRecord, AttendanceHistoryItem, ClassSummary, RosterEntry,
    NotificationEvent, NotificationTemplate, NotificationSubscription,
    NewNotification, Notification,
)

logger = logging.getLogger(__name__)

# Columns a caller may change on an existing attendance record.
ATTENDANCE_UPDATABLE_COLUMNS = ("status", "check_in_time", "notes", "marked_by", "marked_at")


async def init_connection(connection: asyncpg.Connection):
    """Decodes json/jsonb columns into Python objects on every pooled connection."""
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name, encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
        )


class AsyncPostgresClient:
    """
    PostgreSQL client that owns every query the backend runs.
    """
    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    # ===== Tenants and profiles =====

    async def get_school_by_slug(self, slug: str) -> Optional[School]:
        """Returns the active school served under the given slug."""
        query = "SELECT * FROM schools WHERE slug = $1 AND is_active = TRUE;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, slug)
            return School(**record) if record else None

    async def get_user_profile(self, user_id: UUID) -> Optional[UserProfile]:
        query = "SELECT * FROM user_profiles WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return UserProfile(**record) if record else None

    # ===== People and classes =====

    async def get_teacher_by_user(self, user_id: UUID) -> Optional[Teacher]:
        query = "SELECT id, user_id, school_id FROM teachers WHERE user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return Teacher(**record) if record else None

    async def get_parent_by_user(self, user_id: UUID) -> Optional[Parent]:
        query = "SELECT id, user_id, school_id FROM parents WHERE user_id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id)
            return Parent(**record) if record else None

    async def get_student(self, student_id: UUID) -> Optional[Student]:
        query = "SELECT * FROM students WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, student_id)
            return Student(**record) if record else None

    async def is_parent_of_student(self, parent_id: UUID, student_id: UUID) -> bool:
        """Checks the student_parents join table for a parent/student link."""
        query = "SELECT 1 FROM student_parents WHERE parent_id = $1 AND student_id = $2;"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, parent_id, student_id) is not None

    async def get_class(self, class_id: UUID) -> Optional[SchoolClass]:
        query = "SELECT * FROM classes WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, class_id)
            return SchoolClass(**record) if record else None

    async def get_classes(self, class_ids: List[UUID]) -> List[SchoolClass]:
        """Returns the classes matching the given ids, in no particular order."""
        if not class_ids:
            return []
        query = "SELECT * FROM classes WHERE id = ANY($1::uuid[]);"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, class_ids)
            return [SchoolClass(**record) for record in records]

    # ===== Attendance =====

    async def get_class_roster(self, class_id: UUID, attendance_date: date) -> List[RosterEntry]:
        """
        Lists the actively enrolled students of a class together with their record
        for the given day. Students without a record come back with empty marks.
        """
        query = """
            SELECT e.student_id, s.student_code, s.first_name, s.last_name, s.photo_url,
                   a.id AS attendance_id, a.status, a.check_in_time, a.notes, a.marked_at
            FROM enrollments e
            JOIN students s ON s.id = e.student_id
            LEFT JOIN attendance_records a
                   ON a.class_id = e.class_id
                  AND a.student_id = e.student_id
                  AND a.attendance_date = $2
            WHERE e.class_id = $1 AND e.status = 'active'
            ORDER BY s.last_name, s.first_name;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, class_id, attendance_date)
        return [
            RosterEntry(
                student_id=r["student_id"],
                student_code=r["student_code"],
                student_name=f"{r['first_name']} {r['last_name']}",
                student_photo=r["photo_url"],
                attendance_id=r["attendance_id"],
                status=r["status"],
                check_in_time=r["check_in_time"],
                notes=r["notes"],
                marked_at=r["marked_at"],
            )
            for r in records
        ]

    async def get_student_attendance(
        self,
        student_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
    ) -> List[AttendanceHistoryItem]:
        """Returns a student's records, newest day first, each joined with its class."""
        query = """
            SELECT a.*, c.name AS class_name, c.code AS class_code
            FROM attendance_records a
            JOIN classes c ON c.id = a.class_id
            WHERE a.student_id = $1
              AND ($2::date IS NULL OR a.attendance_date >= $2::date)
              AND ($3::date IS NULL OR a.attendance_date <= $3::date)
            ORDER BY a.attendance_date DESC
            LIMIT $4;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, student_id, start_date, end_date, limit)
        items = []
        for record in records:
            row = dict(record)
            classes = ClassSummary(name=row.pop("class_name"), code=row.pop("class_code"))
            items.append(AttendanceHistoryItem(**row, classes=classes))
        return items

    async def get_attendance_record(self, attendance_id: UUID) -> Optional[AttendanceRecord]:
        query = "SELECT * FROM attendance_records WHERE id = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, attendance_id)
            return AttendanceRecord(**record) if record else None

    async def upsert_attendance_records(self, rows: List[Dict[str, Any]]) -> List[AttendanceRecord]:
        """
        Inserts attendance marks, overwriting any existing mark for the same
        (class_id, student_id, attendance_date). All rows go in one transaction.
        """
        if not rows:
            return []
        query = """
            INSERT INTO attendance_records
                (school_id, class_id, student_id, attendance_date, status,
                 check_in_time, notes, marked_by, marked_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (class_id, student_id, attendance_date) DO UPDATE SET
                status = EXCLUDED.status,
                check_in_time = EXCLUDED.check_in_time,
                notes = EXCLUDED.notes,
                marked_by = EXCLUDED.marked_by,
                marked_at = EXCLUDED.marked_at,
                updated_at = now()
            RETURNING *;
        """
        stored = []
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                for row in rows:
                    record = await connection.fetchrow(
                        query,
                        row["school_id"], row["class_id"], row["student_id"],
                        row["attendance_date"], row["status"], row.get("check_in_time"),
                        row.get("notes"), row["marked_by"], row["marked_at"],
                    )
                    stored.append(AttendanceRecord(**record))
        return stored

    async def update_attendance_record(self, attendance_id: UUID, changes: Dict[str, Any]) -> Optional[AttendanceRecord]:
        """Applies a partial update. Keys outside ATTENDANCE_UPDATABLE_COLUMNS are rejected."""
        unknown = set(changes) - set(ATTENDANCE_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
        if not changes:
            return await self.get_attendance_record(attendance_id)

        columns = list(changes)
        assignments = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(columns))
        query = f"""
            UPDATE attendance_records
            SET {assignments}, updated_at = now()
            WHERE id = $1
            RETURNING *;
        """
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, attendance_id, *[changes[c] for c in columns])
            return AttendanceRecord(**record) if record else None

    async def delete_attendance_record(self, attendance_id: UUID) -> str:
        query = "DELETE FROM attendance_records WHERE id = $1;"
        async with self._pool.acquire() as connection:
            return await connection.execute(query, attendance_id)

    # ===== Notification catalogue =====

    async def get_notification_event(self, event_type: str) -> Optional[NotificationEvent]:
        query = "SELECT * FROM notif_events WHERE event_type = $1;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, event_type)
            return NotificationEvent(**record) if record else None

    async def get_notification_events_for_role(self, role: str) -> List[NotificationEvent]:
        query = "SELECT * FROM notif_events WHERE $1 = ANY(available_for_roles) ORDER BY event_type;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, role)
            return [NotificationEvent(**record) for record in records]

    async def get_notification_template(self, event_type: str, channel: str, role: str) -> Optional[NotificationTemplate]:
        query = "SELECT * FROM notif_templates WHERE event_type = $1 AND channel = $2 AND role = $3;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, event_type, channel, role)
            return NotificationTemplate(**record) if record else None

    # ===== Subscriptions =====

    async def get_subscription(self, user_id: UUID, event_type: str) -> Optional[NotificationSubscription]:
        query = "SELECT * FROM notif_subscriptions WHERE user_id = $1 AND event_type = $2;"
        async with self._pool.acquire() as connection:
            record = await connection.fetchrow(query, user_id, event_type)
            return NotificationSubscription(**record) if record else None

    async def get_subscriptions(self, user_id: UUID) -> List[NotificationSubscription]:
        query = "SELECT * FROM notif_subscriptions WHERE user_id = $1;"
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id)
            return [NotificationSubscription(**record) for record in records]

    async def upsert_subscription(self, subscription: NotificationSubscription):
        """Creates or replaces the user's channel preferences for one event type."""
        query = """
            INSERT INTO notif_subscriptions
                (user_id, event_type, in_app_enabled, push_enabled, email_enabled, sms_enabled)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (user_id, event_type) DO UPDATE SET
                in_app_enabled = EXCLUDED.in_app_enabled,
                push_enabled = EXCLUDED.push_enabled,
                email_enabled = EXCLUDED.email_enabled,
                sms_enabled = EXCLUDED.sms_enabled,
                updated_at = now();
        """
        async with self._pool.acquire() as connection:
            await connection.execute(
                query,
                subscription.user_id, subscription.event_type, subscription.in_app_enabled,
                subscription.push_enabled, subscription.email_enabled, subscription.sms_enabled,
            )

    # ===== Notification queue =====

    async def add_notifications(self, notifications: List[NewNotification]) -> List[Notification]:
        """Inserts rendered queue rows in a single transaction and returns them as stored."""
        if not notifications:
            return []
        query = """
            INSERT INTO notif_queue
                (school_id, user_id, event_type, channel, title, body, action_url,
                 icon, priority, event_data, status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *;
        """
        created = []
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                for n in notifications:
                    record = await connection.fetchrow(
                        query,
                        n.school_id, n.user_id, n.event_type, n.channel, n.title, n.body,
                        n.action_url, n.icon, n.priority, n.event_data, n.status,
                    )
                    created.append(Notification(**record))
        return created

    async def get_notifications(
        self,
        user_id: UUID,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[Notification]:
        """Returns the user's queue rows, newest first, optionally filtered."""
        query = """
            SELECT * FROM notif_queue
            WHERE user_id = $1
              AND ($2::text IS NULL OR status = $2::text)
              AND ($3::text IS NULL OR event_type = $3::text)
            ORDER BY created_at DESC
            LIMIT $4 OFFSET $5;
        """
        async with self._pool.acquire() as connection:
            records = await connection.fetch(query, user_id, status, event_type, limit, offset)
            return [Notification(**record) for record in records]

    async def count_unread_notifications(self, user_id: UUID) -> int:
        query = "SELECT count(*) FROM notif_queue WHERE user_id = $1 AND status <> 'read';"
        async with self._pool.acquire() as connection:
            return await connection.fetchval(query, user_id)

    async def mark_notification_read(self, notification_id: UUID, user_id: UUID) -> str:
        """Marks one of the user's notifications as read. Returns the command status tag."""
        query = """
            UPDATE notif_queue
            SET status = 'read', read_at = $3, updated_at = $3
            WHERE id = $1 AND user_id = $2;
        """
        async with self._pool.acquire() as connection:
            return await connection.execute(query, notification_id, user_id, datetime.now(timezone.utc))

    async def mark_all_notifications_read(self, user_id: UUID) -> str:
        query = """
            UPDATE notif_queue
            SET status = 'read', read_at = $2, updated_at = $2
            WHERE user_id = $1 AND status <> 'read';
        """
        async with self._pool.acquire() as connection:
            return await connection.execute(query, user_id, datetime.now(timezone.utc))

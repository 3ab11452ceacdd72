import logging
from collections import Counter
from typing import List, Optional, Dict, Any, Tuple
from uuid import UUID
from datetime import datetime, date, timezone

from ..db.db_client import AsyncPostgresClient
from ..models.db_models import (
    UserProfile, Teacher, AttendanceRecord, AttendanceHistoryItem, AttendanceSummary,
    RosterEntry, ATTENDANCE_STATUSES,
)
from ..modules.capabilities import is_admin_role
from ..modules.tenant import validate_tenant_boundary
from .errors import ServiceError, AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50
INVALID_STATUS_MESSAGE = f"Invalid status. Must be one of: {', '.join(ATTENDANCE_STATUSES)}"


def summarize_attendance(records: List[AttendanceRecord]) -> AttendanceSummary:
    """Counts records per status."""
    counts = Counter(record.status for record in records)
    return AttendanceSummary(**{status: counts[status] for status in ATTENDANCE_STATUSES}, total=len(records))


class AttendanceService:
    """
    Business rules for reading and marking attendance.

    Every request re-derives what the caller may do from the database: whether
    they teach the class, are the student, are a linked parent, or hold an admin
    role inside the same school.
    """
    def __init__(self, db_client: AsyncPostgresClient):
        self.db_client = db_client
        # Teacher rows looked up during this request, keyed by user id.
        self._teachers: Dict[UUID, Optional[Teacher]] = {}

    def _is_admin_for(self, caller: UserProfile, school_id: Optional[UUID]) -> bool:
        return is_admin_role(caller.user_type) and validate_tenant_boundary(caller, school_id)

    async def _get_teacher(self, user_id: UUID) -> Optional[Teacher]:
        if user_id not in self._teachers:
            self._teachers[user_id] = await self.db_client.get_teacher_by_user(user_id)
        return self._teachers[user_id]

    async def require_marker(self, caller: UserProfile, action: str) -> Optional[Teacher]:
        """
        Returns the caller's teacher row; fails unless the caller is a teacher or an admin.
        Routers call this before looking at the request body.
        """
        teacher = await self._get_teacher(caller.id)
        if not teacher and not is_admin_role(caller.user_type):
            logger.warning(f"User '{caller.id}' ({caller.user_type}) tried to {action} attendance.")
            raise AuthorizationError(f"Unauthorized: Only teachers can {action} attendance")
        return teacher

    # === Reads ===

    async def get_class_attendance(self, caller: UserProfile, class_id: UUID, attendance_date: date) -> List[RosterEntry]:
        school_class = await self.db_client.get_class(class_id)
        if not school_class:
            raise NotFoundError("Class not found")

        teacher = await self._get_teacher(caller.id)
        is_teacher_of_class = teacher is not None and school_class.teacher_id == teacher.id

        if not is_teacher_of_class and not self._is_admin_for(caller, school_class.school_id):
            logger.warning(f"User '{caller.id}' denied roster of class {class_id}.")
            raise AuthorizationError("Unauthorized: Not the teacher of this class")

        return await self.db_client.get_class_roster(class_id, attendance_date)

    async def get_student_attendance(
        self,
        caller: UserProfile,
        student_id: UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[List[AttendanceHistoryItem], AttendanceSummary]:
        student = await self.db_client.get_student(student_id)
        if not student:
            raise NotFoundError("Student not found")

        is_student = student.user_id is not None and student.user_id == caller.id

        is_parent = False
        if not is_student:
            parent = await self.db_client.get_parent_by_user(caller.id)
            if parent:
                is_parent = await self.db_client.is_parent_of_student(parent.id, student.id)

        if not is_student and not is_parent and not self._is_admin_for(caller, student.school_id):
            logger.warning(f"User '{caller.id}' denied attendance history of student {student_id}.")
            raise AuthorizationError("Unauthorized: Cannot view this student's attendance")

        if start_date and end_date and start_date > end_date:
            raise ServiceError("start_date must not be after end_date")

        records = await self.db_client.get_student_attendance(student_id, start_date, end_date, limit=HISTORY_LIMIT)
        return records, summarize_attendance(records)

    # === Writes ===

    async def mark_attendance(self, caller: UserProfile, records: List[Dict[str, Any]]) -> List[AttendanceRecord]:
        """
        Upserts one mark per (class_id, student_id, attendance_date).

        Teachers may only mark classes they teach; admins may mark any class of
        their own school. Nothing is written unless every record passes.
        """
        teacher = await self.require_marker(caller, "mark")

        if not records:
            raise ServiceError("No attendance records provided")
        for record in records:
            if record.get("status") not in ATTENDANCE_STATUSES:
                raise ServiceError(INVALID_STATUS_MESSAGE)

        class_ids = list({record["class_id"] for record in records})
        classes = {c.id: c for c in await self.db_client.get_classes(class_ids)}

        is_admin = is_admin_role(caller.user_type)
        for record in records:
            school_class = classes.get(record["class_id"])
            if is_admin:
                if not school_class:
                    raise NotFoundError("Class not found")
                if not validate_tenant_boundary(caller, school_class.school_id):
                    raise AuthorizationError("Unauthorized: Class belongs to another school")
            elif not school_class or school_class.teacher_id != teacher.id:
                logger.warning(f"Teacher '{caller.id}' tried to mark class {record['class_id']} they do not teach.")
                raise AuthorizationError("Unauthorized: Not the teacher of this class")

        now = datetime.now(timezone.utc)
        rows = [
            {
                "school_id": classes[record["class_id"]].school_id,
                "class_id": record["class_id"],
                "student_id": record["student_id"],
                "attendance_date": record["attendance_date"],
                "status": record["status"],
                "check_in_time": record.get("check_in_time"),
                "notes": record.get("notes"),
                "marked_by": caller.id,
                "marked_at": now,
            }
            for record in records
        ]

        try:
            stored = await self.db_client.upsert_attendance_records(rows)
        except Exception as e:
            logger.error(f"Error while upserting {len(rows)} attendance records.", exc_info=True)
            raise ServiceError("A database error occurred while marking attendance.") from e

        logger.info(f"User '{caller.id}' marked {len(stored)} attendance records.")
        return stored

    async def _get_changeable_record(self, caller: UserProfile, attendance_id: UUID, action: str) -> AttendanceRecord:
        teacher = await self.require_marker(caller, action)

        record = await self.db_client.get_attendance_record(attendance_id)
        if not record:
            raise NotFoundError("Attendance record not found")

        if is_admin_role(caller.user_type):
            if not validate_tenant_boundary(caller, record.school_id):
                raise AuthorizationError("Unauthorized: Attendance record belongs to another school")
            return record

        school_class = await self.db_client.get_class(record.class_id)
        if not school_class or school_class.teacher_id != teacher.id:
            logger.warning(f"Teacher '{caller.id}' tried to {action} record {attendance_id} of a class they do not teach.")
            raise AuthorizationError("Unauthorized: Not the teacher of this class")
        return record

    async def update_attendance(self, caller: UserProfile, attendance_id: UUID, changes: Dict[str, Any]) -> AttendanceRecord:
        """Changes only the given fields of an existing record and restamps who marked it."""
        await self._get_changeable_record(caller, attendance_id, "update")

        if changes.get("status") is not None and changes["status"] not in ATTENDANCE_STATUSES:
            raise ServiceError(INVALID_STATUS_MESSAGE)

        update = {k: v for k, v in changes.items() if k in ("status", "check_in_time", "notes")}
        if update.get("status") is None:
            update.pop("status", None)
        update["marked_by"] = caller.id
        update["marked_at"] = datetime.now(timezone.utc)

        updated = await self.db_client.update_attendance_record(attendance_id, update)
        if not updated:
            raise NotFoundError("Attendance record not found")
        return updated

    async def delete_attendance(self, caller: UserProfile, attendance_id: UUID) -> None:
        await self._get_changeable_record(caller, attendance_id, "delete")
        await self.db_client.delete_attendance_record(attendance_id)
        logger.info(f"User '{caller.id}' deleted attendance record {attendance_id}.")

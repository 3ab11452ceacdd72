from pydantic import BaseModel, Field, field_validator
from uuid import UUID
from datetime import date, time
from typing import Optional, List

from ...models.db_models import (
    AttendanceRecord, AttendanceHistoryItem, AttendanceSummary, RosterEntry, ATTENDANCE_STATUSES,
)


def _check_status(value: Optional[str]) -> Optional[str]:
    if value is not None and value not in ATTENDANCE_STATUSES:
        raise ValueError(f"Invalid status. Must be one of: {', '.join(ATTENDANCE_STATUSES)}")
    return value


class AttendanceMarkRequest(BaseModel):
    """One mark; POST /attendance accepts a single object or a list of them."""
    class_id: UUID
    student_id: UUID
    attendance_date: date = Field(..., description="Day being marked, YYYY-MM-DD.")
    status: str = Field(..., description="present, absent, late or excused.")
    check_in_time: Optional[time] = None
    notes: Optional[str] = None

    @field_validator("status")
    def validate_status(cls, v):
        return _check_status(v)


class AttendanceUpdateRequest(BaseModel):
    """
    Partial update; only fields present in the body are changed.
    status is checked by the service once the record is known to exist.
    """
    status: Optional[str] = None
    check_in_time: Optional[time] = None
    notes: Optional[str] = None


class ClassAttendanceResponse(BaseModel):
    data: List[RosterEntry]


class StudentAttendanceResponse(BaseModel):
    data: List[AttendanceHistoryItem]
    summary: AttendanceSummary


class AttendanceWriteResponse(BaseModel):
    data: List[AttendanceRecord]
    message: str


class MessageResponse(BaseModel):
    message: str

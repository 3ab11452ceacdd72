import pytest
import pytest_asyncio
import uuid
from datetime import date
from unittest.mock import AsyncMock

from educrm.backend.services.attendance_service import AttendanceService, summarize_attendance
from educrm.backend.services.errors import ServiceError, AuthorizationError, NotFoundError
from educrm.backend.models.db_models import (
    Teacher, Parent, Student, SchoolClass, AttendanceRecord, RosterEntry,
)

TODAY = date(2025, 3, 14)


# --- Test Fixtures ---

@pytest.fixture
def teacher_row(teacher_profile, school_id) -> Teacher:
    return Teacher(id=uuid.uuid4(), user_id=teacher_profile.id, school_id=school_id)


@pytest.fixture
def school_class(teacher_row, school_id) -> SchoolClass:
    return SchoolClass(id=uuid.uuid4(), school_id=school_id, teacher_id=teacher_row.id, name="Math 101", code="MATH101")


@pytest.fixture
def student(school_id) -> Student:
    return Student(id=uuid.uuid4(), user_id=uuid.uuid4(), school_id=school_id, student_code="S001", first_name="Grace", last_name="Hopper")


def make_record(school_class: SchoolClass, student_id: uuid.UUID, status: str = "present") -> AttendanceRecord:
    return AttendanceRecord(
        id=uuid.uuid4(),
        school_id=school_class.school_id,
        class_id=school_class.id,
        student_id=student_id,
        attendance_date=TODAY,
        status=status,
    )


@pytest_asyncio.fixture
async def service_instance():
    """Creates an AttendanceService with a mocked database client for each test."""
    mock_db_client = AsyncMock()
    mock_db_client.get_teacher_by_user.return_value = None
    mock_db_client.get_parent_by_user.return_value = None
    return AttendanceService(db_client=mock_db_client), mock_db_client


# --- Test Scenarios ---

def test_summarize_attendance_counts_each_status(school_class):
    student_id = uuid.uuid4()
    records = [make_record(school_class, student_id, s) for s in ("present", "present", "late", "excused", "absent", "present")]
    summary = summarize_attendance(records)
    assert (summary.present, summary.absent, summary.late, summary.excused, summary.total) == (3, 1, 1, 1, 6)


def test_summarize_attendance_empty():
    assert summarize_attendance([]).total == 0


@pytest.mark.asyncio
class TestClassAttendance:

    async def test_teacher_of_class_gets_roster(self, service_instance, teacher_profile, teacher_row, school_class):
        service, db = service_instance
        db.get_class.return_value = school_class
        db.get_teacher_by_user.return_value = teacher_row
        roster = [RosterEntry(student_id=uuid.uuid4(), student_code="S001", student_name="Grace Hopper")]
        db.get_class_roster.return_value = roster

        result = await service.get_class_attendance(teacher_profile, school_class.id, TODAY)

        assert result == roster
        db.get_class_roster.assert_awaited_once_with(school_class.id, TODAY)

    async def test_unknown_class_is_not_found(self, service_instance, teacher_profile):
        service, db = service_instance
        db.get_class.return_value = None
        with pytest.raises(NotFoundError, match="Class not found"):
            await service.get_class_attendance(teacher_profile, uuid.uuid4(), TODAY)

    async def test_other_teacher_is_denied(self, service_instance, make_profile, school_class, school_id):
        service, db = service_instance
        other = make_profile("teacher")
        db.get_class.return_value = school_class
        db.get_teacher_by_user.return_value = Teacher(id=uuid.uuid4(), user_id=other.id, school_id=school_id)

        with pytest.raises(AuthorizationError, match="Not the teacher of this class"):
            await service.get_class_attendance(other, school_class.id, TODAY)
        db.get_class_roster.assert_not_called()

    async def test_admin_of_same_school_gets_roster(self, service_instance, admin_profile, school_class):
        service, db = service_instance
        db.get_class.return_value = school_class
        db.get_class_roster.return_value = []
        assert await service.get_class_attendance(admin_profile, school_class.id, TODAY) == []

    async def test_admin_of_other_school_is_denied(self, service_instance, make_profile, school_class):
        service, db = service_instance
        db.get_class.return_value = school_class
        with pytest.raises(AuthorizationError):
            await service.get_class_attendance(make_profile("admin", school_id=uuid.uuid4()), school_class.id, TODAY)


@pytest.mark.asyncio
class TestStudentAttendance:

    async def test_student_sees_own_history_with_summary(self, service_instance, make_profile, student, school_class):
        service, db = service_instance
        db.get_student.return_value = student
        records = [make_record(school_class, student.id, "present"), make_record(school_class, student.id, "late")]
        db.get_student_attendance.return_value = records

        caller = make_profile("student", id=student.user_id)
        result, summary = await service.get_student_attendance(caller, student.id)

        assert result == records
        assert summary.present == 1 and summary.late == 1 and summary.total == 2
        db.get_student_attendance.assert_awaited_once_with(student.id, None, None, limit=50)

    async def test_linked_parent_is_allowed(self, service_instance, make_profile, student, school_id):
        service, db = service_instance
        parent = make_profile("parent")
        db.get_student.return_value = student
        db.get_parent_by_user.return_value = Parent(id=uuid.uuid4(), user_id=parent.id, school_id=school_id)
        db.is_parent_of_student.return_value = True
        db.get_student_attendance.return_value = []

        _, summary = await service.get_student_attendance(parent, student.id)
        assert summary.total == 0

    async def test_unlinked_parent_is_denied(self, service_instance, make_profile, student, school_id):
        service, db = service_instance
        parent = make_profile("parent")
        db.get_student.return_value = student
        db.get_parent_by_user.return_value = Parent(id=uuid.uuid4(), user_id=parent.id, school_id=school_id)
        db.is_parent_of_student.return_value = False

        with pytest.raises(AuthorizationError, match="Cannot view this student's attendance"):
            await service.get_student_attendance(parent, student.id)

    async def test_teacher_is_denied(self, service_instance, teacher_profile, student):
        service, db = service_instance
        db.get_student.return_value = student
        with pytest.raises(AuthorizationError):
            await service.get_student_attendance(teacher_profile, student.id)

    async def test_admin_of_same_school_is_allowed(self, service_instance, admin_profile, student):
        service, db = service_instance
        db.get_student.return_value = student
        db.get_student_attendance.return_value = []
        await service.get_student_attendance(admin_profile, student.id)

    async def test_unknown_student_is_not_found(self, service_instance, admin_profile):
        service, db = service_instance
        db.get_student.return_value = None
        with pytest.raises(NotFoundError, match="Student not found"):
            await service.get_student_attendance(admin_profile, uuid.uuid4())

    async def test_inverted_date_range_is_rejected(self, service_instance, admin_profile, student):
        service, db = service_instance
        db.get_student.return_value = student
        with pytest.raises(ServiceError):
            await service.get_student_attendance(admin_profile, student.id, date(2025, 3, 2), date(2025, 3, 1))


@pytest.mark.asyncio
class TestMarkAttendance:

    def _payload(self, school_class, student_id, status="present"):
        return {
            "class_id": school_class.id,
            "student_id": student_id,
            "attendance_date": TODAY,
            "status": status,
            "check_in_time": None,
            "notes": None,
        }

    async def test_teacher_marks_own_class(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        db.get_teacher_by_user.return_value = teacher_row
        db.get_classes.return_value = [school_class]
        stored = [make_record(school_class, student.id)]
        db.upsert_attendance_records.return_value = stored

        result = await service.mark_attendance(teacher_profile, [self._payload(school_class, student.id)])

        assert result == stored
        rows = db.upsert_attendance_records.await_args.args[0]
        assert rows[0]["school_id"] == school_class.school_id
        assert rows[0]["marked_by"] == teacher_profile.id
        assert rows[0]["marked_at"] is not None

    async def test_non_teacher_is_denied(self, service_instance, make_profile, school_class, student):
        service, db = service_instance
        with pytest.raises(AuthorizationError, match="Only teachers can mark attendance"):
            await service.mark_attendance(make_profile("parent"), [self._payload(school_class, student.id)])
        db.upsert_attendance_records.assert_not_called()

    async def test_teacher_of_other_class_is_denied(self, service_instance, teacher_profile, teacher_row, school_id, student):
        service, db = service_instance
        foreign_class = SchoolClass(id=uuid.uuid4(), school_id=school_id, teacher_id=uuid.uuid4(), name="Art", code="ART1")
        db.get_teacher_by_user.return_value = teacher_row
        db.get_classes.return_value = [foreign_class]

        with pytest.raises(AuthorizationError, match="Not the teacher of this class"):
            await service.mark_attendance(teacher_profile, [self._payload(foreign_class, student.id)])
        db.upsert_attendance_records.assert_not_called()

    async def test_one_bad_record_rejects_the_batch(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        db.get_teacher_by_user.return_value = teacher_row
        batch = [self._payload(school_class, student.id), self._payload(school_class, uuid.uuid4(), status="sick")]

        with pytest.raises(ServiceError, match="Invalid status"):
            await service.mark_attendance(teacher_profile, batch)
        db.upsert_attendance_records.assert_not_called()

    async def test_empty_batch_is_rejected(self, service_instance, teacher_profile, teacher_row):
        service, db = service_instance
        db.get_teacher_by_user.return_value = teacher_row
        with pytest.raises(ServiceError):
            await service.mark_attendance(teacher_profile, [])

    async def test_admin_marks_class_of_own_school(self, service_instance, admin_profile, school_class, student):
        service, db = service_instance
        db.get_classes.return_value = [school_class]
        db.upsert_attendance_records.return_value = [make_record(school_class, student.id)]
        result = await service.mark_attendance(admin_profile, [self._payload(school_class, student.id)])
        assert len(result) == 1

    async def test_admin_cannot_mark_other_school(self, service_instance, make_profile, school_class, student):
        service, db = service_instance
        db.get_classes.return_value = [school_class]
        with pytest.raises(AuthorizationError):
            await service.mark_attendance(make_profile("admin", school_id=uuid.uuid4()), [self._payload(school_class, student.id)])

    async def test_database_failure_becomes_service_error(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        db.get_teacher_by_user.return_value = teacher_row
        db.get_classes.return_value = [school_class]
        db.upsert_attendance_records.side_effect = RuntimeError("connection reset")

        with pytest.raises(ServiceError, match="database error"):
            await service.mark_attendance(teacher_profile, [self._payload(school_class, student.id)])


@pytest.mark.asyncio
class TestChangeAttendance:

    async def test_update_changes_only_given_fields(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        record = make_record(school_class, student.id)
        db.get_teacher_by_user.return_value = teacher_row
        db.get_attendance_record.return_value = record
        db.get_class.return_value = school_class
        db.update_attendance_record.return_value = record.model_copy(update={"status": "late"})

        updated = await service.update_attendance(teacher_profile, record.id, {"status": "late"})

        assert updated.status == "late"
        changes = db.update_attendance_record.await_args.args[1]
        assert changes["status"] == "late"
        assert changes["marked_by"] == teacher_profile.id
        assert "notes" not in changes

    async def test_update_ignores_null_status(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        record = make_record(school_class, student.id)
        db.get_teacher_by_user.return_value = teacher_row
        db.get_attendance_record.return_value = record
        db.get_class.return_value = school_class
        db.update_attendance_record.return_value = record

        await service.update_attendance(teacher_profile, record.id, {"status": None, "notes": "Bus was late"})

        changes = db.update_attendance_record.await_args.args[1]
        assert "status" not in changes
        assert changes["notes"] == "Bus was late"

    async def test_update_unknown_record_is_not_found(self, service_instance, teacher_profile, teacher_row):
        service, db = service_instance
        db.get_teacher_by_user.return_value = teacher_row
        db.get_attendance_record.return_value = None
        with pytest.raises(NotFoundError):
            await service.update_attendance(teacher_profile, uuid.uuid4(), {"status": "late"})

    async def test_update_by_student_is_denied(self, service_instance, make_profile):
        service, _ = service_instance
        with pytest.raises(AuthorizationError, match="Only teachers can update attendance"):
            await service.update_attendance(make_profile("student"), uuid.uuid4(), {"status": "late"})

    async def test_delete_by_teacher_of_class(self, service_instance, teacher_profile, teacher_row, school_class, student):
        service, db = service_instance
        record = make_record(school_class, student.id)
        db.get_teacher_by_user.return_value = teacher_row
        db.get_attendance_record.return_value = record
        db.get_class.return_value = school_class

        await service.delete_attendance(teacher_profile, record.id)
        db.delete_attendance_record.assert_awaited_once_with(record.id)

    async def test_delete_by_other_teacher_is_denied(self, service_instance, teacher_profile, teacher_row, school_id, student):
        service, db = service_instance
        foreign_class = SchoolClass(id=uuid.uuid4(), school_id=school_id, teacher_id=uuid.uuid4(), name="Art", code="ART1")
        record = make_record(foreign_class, student.id)
        db.get_teacher_by_user.return_value = teacher_row
        db.get_attendance_record.return_value = record
        db.get_class.return_value = foreign_class

        with pytest.raises(AuthorizationError):
            await service.delete_attendance(teacher_profile, record.id)
        db.delete_attendance_record.assert_not_called()

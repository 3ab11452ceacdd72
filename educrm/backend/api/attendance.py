import logging
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from typing import List, Optional, Union, Dict, Any
from uuid import UUID
from datetime import date, datetime, timezone
from pydantic import ValidationError

from ..services.attendance_service import AttendanceService
from ..services.errors import ServiceError
from ..models.db_models import UserProfile
from .schemas.attendance import (
    AttendanceMarkRequest,
    AttendanceUpdateRequest,
    ClassAttendanceResponse,
    StudentAttendanceResponse,
    AttendanceWriteResponse,
    MessageResponse,
)
from .auth import get_current_user
from .dependencies import get_attendance_service
from .utilities.errors import describe_validation_errors, to_http_exception
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


# === Reads ===

@router.get("/class/{class_id}", response_model=ClassAttendanceResponse, summary="Roster of a class with today's marks")
@router.get("/class/{class_id}/{attendance_date}", response_model=ClassAttendanceResponse, summary="Roster of a class with the marks of a given day")
@limiter.limit("120/minute")
async def get_class_attendance(request: Request, class_id: UUID, attendance_date: Optional[date] = None, user: UserProfile = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    target_date = attendance_date or datetime.now(timezone.utc).date()
    try:
        roster = await service.get_class_attendance(user, class_id, target_date)
    except ServiceError as e:
        raise to_http_exception(e)
    return ClassAttendanceResponse(data=roster)


@router.get("/student/{student_id}", response_model=StudentAttendanceResponse, summary="Recent attendance of a student with a per-status summary")
@limiter.limit("120/minute")
async def get_student_attendance(
    request: Request,
    student_id: UUID,
    start_date: Optional[date] = Query(None, description="Earliest day to include, YYYY-MM-DD."),
    end_date: Optional[date] = Query(None, description="Latest day to include, YYYY-MM-DD."),
    user: UserProfile = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    try:
        records, summary = await service.get_student_attendance(user, student_id, start_date, end_date)
    except ServiceError as e:
        raise to_http_exception(e)
    return StudentAttendanceResponse(data=records, summary=summary)


# === Writes ===

@router.post("", response_model=AttendanceWriteResponse, summary="Mark attendance for one or more students")
@limiter.limit("60/minute")
async def mark_attendance(
    request: Request,
    payload: Union[List[Dict[str, Any]], Dict[str, Any]] = Body(...),
    user: UserProfile = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    # Role first: callers who may not mark get 403 whatever the body holds.
    try:
        await service.require_marker(user, "mark")
    except ServiceError as e:
        raise to_http_exception(e)

    raw_records = payload if isinstance(payload, list) else [payload]
    try:
        records = [AttendanceMarkRequest.model_validate(raw) for raw in raw_records]
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=describe_validation_errors(e.errors()))

    try:
        stored = await service.mark_attendance(user, [r.model_dump() for r in records])
    except ServiceError as e:
        raise to_http_exception(e)
    return AttendanceWriteResponse(data=stored, message="Attendance marked successfully")


@router.put("/{attendance_id}", response_model=AttendanceWriteResponse, summary="Change an existing attendance record")
@limiter.limit("60/minute")
async def update_attendance(
    request: Request,
    attendance_id: UUID,
    payload: Dict[str, Any] = Body(...),
    user: UserProfile = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    try:
        await service.require_marker(user, "update")
    except ServiceError as e:
        raise to_http_exception(e)

    try:
        update_request = AttendanceUpdateRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=describe_validation_errors(e.errors()))

    try:
        updated = await service.update_attendance(user, attendance_id, update_request.model_dump(exclude_unset=True))
    except ServiceError as e:
        raise to_http_exception(e)
    return AttendanceWriteResponse(data=[updated], message="Attendance updated successfully")


@router.delete("/{attendance_id}", response_model=MessageResponse, summary="Delete an attendance record")
@limiter.limit("60/minute")
async def delete_attendance(request: Request, attendance_id: UUID, user: UserProfile = Depends(get_current_user), service: AttendanceService = Depends(get_attendance_service)):
    try:
        await service.delete_attendance(user, attendance_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return MessageResponse(message="Attendance deleted successfully")

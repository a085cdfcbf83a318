from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import STAFF_ROLES, UserRole
from ..schemas.academics import AttendanceMark
from ..services.attendance_service import AttendanceService
from ..services.class_service import ClassService
from ..services.student_service import StudentService

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])

MARKING_ROLES = {UserRole.TEACHER.value, UserRole.SCHOOL_ADMIN.value, UserRole.PRINCIPAL.value}


@router.post("/class/{class_id}")
async def mark_attendance(class_id: UUID, payload: AttendanceMark, principal: Principal = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db)):
    """Record attendance for a class. Re-marking the same day overwrites the previous status."""
    school_class = await ClassService(db).get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=MARKING_ROLES)
    entries = [entry.model_dump() for entry in payload.attendance]
    records = await AttendanceService(db).mark_class(school_class, payload.date, entries, principal.id)
    return {
        "message": "Attendance recorded successfully",
        "class_id": str(class_id),
        "date": payload.date.isoformat(),
        "recorded": len(records),
    }


@router.get("/class/{class_id}/date/{attendance_date}")
async def class_attendance(class_id: UUID, attendance_date: date, principal: Principal = Depends(get_current_user),
                           db: AsyncSession = Depends(get_db)):
    school_class = await ClassService(db).get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=STAFF_ROLES)
    students = await AttendanceService(db).class_on_date(class_id, attendance_date)
    return {
        "class_id": str(class_id),
        "class_name": school_class.name,
        "date": attendance_date.isoformat(),
        "students": students,
    }


@router.get("/student/{student_id}/summary")
async def student_summary(
    student_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    return await AttendanceService(db).student_summary(student_id, start_date, end_date)

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.tenant_specific.student import StudentStatus
from ..models.user import SCHOOL_MANAGER_ROLES, STAFF_ROLES
from ..schemas.people import StudentCreate, StudentUpdate
from ..services.attendance_service import AttendanceService, format_attendance
from ..services.csv_processor import CSVProcessor
from ..services.grade_service import GradeService, format_grade
from ..services.school_service import SchoolService
from ..services.student_service import StudentService, format_student
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/students", tags=["Students"])


@router.get("/school/{school_id}")
async def list_students(
    school_id: UUID,
    class_id: Optional[UUID] = Query(None),
    status: Optional[StudentStatus] = Query(StudentStatus.ACTIVE),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_school_access(db, principal, school_id, roles=STAFF_ROLES)
    service = StudentService(db)
    students, total = await service.list_students(
        school_id, class_id, status.value if status else None, search, pagination.page, pagination.limit
    )
    names = await service.class_names(students)
    items = [format_student(s, names.get(s.class_id)) for s in students]
    return Paginator.create_response(items, pagination.page, pagination.limit, total)


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_student(school_id: UUID, payload: StudentCreate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    student = await StudentService(db).create_student(school_id, payload.model_dump())
    return {"id": str(student.id), "message": "Student created successfully", "student": format_student(student)}


@router.get("/school/{school_id}/import/template")
async def import_template(school_id: UUID, principal: Principal = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    return Response(
        content=CSVProcessor.generate_student_template(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=students_template.csv"},
    )


@router.post("/school/{school_id}/import")
async def import_students(school_id: UUID, file: UploadFile = File(...),
                          principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Bulk-create students from a CSV upload. Valid rows are kept even when others fail."""
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    result = await StudentService(db).import_csv(school_id, file)
    return {"message": f"Imported {result['created']} students", **result}


@router.get("/{student_id}")
async def get_student(student_id: UUID, principal: Principal = Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    names = await service.class_names([student])
    return format_student(student, names.get(student.class_id))


@router.put("/{student_id}")
async def update_student(student_id: UUID, payload: StudentUpdate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await ensure_school_access(db, principal, student.school_id, roles=SCHOOL_MANAGER_ROLES)
    student = await service.update_student(student, payload.changes())
    return {"message": "Student updated successfully", "student": format_student(student)}


@router.get("/{student_id}/attendance")
async def student_attendance(
    student_id: UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    attendance = AttendanceService(db)
    summary = await attendance.student_summary(student_id, start_date, end_date)
    recent = await attendance.recent(student_id)
    return {"summary": summary, "recent": [format_attendance(r) for r in recent]}


@router.get("/{student_id}/grades")
async def student_grades(
    student_id: UUID,
    term_id: Optional[UUID] = Query(None),
    subject_id: Optional[UUID] = Query(None),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    rows = await GradeService(db).for_student(student_id, term_id, subject_id)
    return {"student_id": str(student_id), "grades": [format_grade(g, name) for g, name in rows]}

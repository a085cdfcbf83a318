from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import STAFF_ROLES, UserRole
from ..schemas.academics import GradeCreate, GradeUpdate
from ..services.class_service import ClassService
from ..services.grade_service import GradeService, format_grade
from ..services.student_service import StudentService, format_student

router = APIRouter(prefix="/api/grades", tags=["Grades"])

GRADING_ROLES = {UserRole.TEACHER.value, UserRole.SCHOOL_ADMIN.value, UserRole.PRINCIPAL.value}


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_grade(payload: GradeCreate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    student = await StudentService(db).get_or_404(payload.student_id)
    await ensure_school_access(db, principal, student.school_id, roles=GRADING_ROLES)
    grade = await GradeService(db).record(payload.model_dump(), principal.id)
    return {"id": str(grade.id), "message": "Grade recorded successfully", "grade": format_grade(grade)}


@router.get("/student/{student_id}")
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


@router.get("/class/{class_id}/subject/{subject_id}")
async def class_subject_grades(
    class_id: UUID,
    subject_id: UUID,
    term_id: Optional[UUID] = Query(None),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    school_class = await ClassService(db).get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=STAFF_ROLES)
    rows = await GradeService(db).for_class_subject(class_id, subject_id, term_id)
    return {
        "class_id": str(class_id),
        "subject_id": str(subject_id),
        "grades": [{**format_grade(g), "student": format_student(s)} for g, s in rows],
    }


@router.put("/{grade_id}")
async def update_grade(grade_id: UUID, payload: GradeUpdate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = GradeService(db)
    grade = await service.get_or_404(grade_id)
    student = await StudentService(db).get_or_404(grade.student_id)
    await ensure_school_access(db, principal, student.school_id, roles=GRADING_ROLES)
    grade = await service.amend(grade, payload.changes())
    return {"message": "Grade updated successfully", "grade": format_grade(grade)}

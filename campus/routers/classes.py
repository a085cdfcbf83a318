from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES, STAFF_ROLES
from ..schemas.academics import ClassCreate, ClassSubjectAssign, ClassUpdate
from ..services.class_service import ClassService, format_class
from ..services.school_service import SchoolService
from ..services.student_service import format_student
from ..utils.formatting import sid

router = APIRouter(prefix="/api/classes", tags=["Classes"])


@router.get("/school/{school_id}")
async def list_classes(school_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, school_id, roles=STAFF_ROLES)
    rows = await ClassService(db).list_classes(school_id)
    return {"classes": [format_class(c, count) for c, count in rows]}


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_class(school_id: UUID, payload: ClassCreate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    school_class = await ClassService(db).create_class(school_id, payload.model_dump())
    return {"id": str(school_class.id), "message": "Class created successfully", "class": format_class(school_class, 0)}


@router.get("/{class_id}")
async def get_class(class_id: UUID, principal: Principal = Depends(get_current_user),
                    db: AsyncSession = Depends(get_db)):
    service = ClassService(db)
    school_class = await service.get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=STAFF_ROLES)
    students = await service.students(class_id)
    data = format_class(school_class, len(students))
    data["students"] = [format_student(s, school_class.name) for s in students]
    data["subjects"] = await service.subjects(class_id)
    return data


@router.put("/{class_id}")
async def update_class(class_id: UUID, payload: ClassUpdate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = ClassService(db)
    school_class = await service.get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=SCHOOL_MANAGER_ROLES)
    school_class = await service.update_class(school_class, payload.changes())
    return {"message": "Class updated successfully", "class": format_class(school_class)}


@router.post("/{class_id}/subjects", status_code=status.HTTP_201_CREATED)
async def assign_subject(class_id: UUID, payload: ClassSubjectAssign, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    service = ClassService(db)
    school_class = await service.get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=SCHOOL_MANAGER_ROLES)
    assignment = await service.assign_subject(school_class, payload.subject_id, payload.teacher_id)
    return {
        "message": "Subject assigned to class",
        "class_id": str(assignment.class_id),
        "subject_id": str(assignment.subject_id),
        "teacher_id": sid(assignment.teacher_id),
    }

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.tenant_specific.teacher import TeacherStatus
from ..models.user import SCHOOL_MANAGER_ROLES, STAFF_ROLES
from ..schemas.people import TeacherCreate, TeacherUpdate
from ..services.school_service import SchoolService
from ..services.teacher_service import TeacherService, format_teacher
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/teachers", tags=["Teachers"])


@router.get("/school/{school_id}")
async def list_teachers(
    school_id: UUID,
    status: Optional[TeacherStatus] = Query(None),
    search: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_school_access(db, principal, school_id, roles=STAFF_ROLES)
    rows, total = await TeacherService(db).list_teachers(
        school_id, status.value if status else None, search, pagination.page, pagination.limit
    )
    return Paginator.create_response([format_teacher(t, u) for t, u in rows], pagination.page, pagination.limit, total)


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_teacher(school_id: UUID, payload: TeacherCreate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    teacher, user = await TeacherService(db).create_teacher(school_id, payload.model_dump())
    return {"id": str(teacher.id), "message": "Teacher created successfully", "teacher": format_teacher(teacher, user)}


@router.get("/{teacher_id}")
async def get_teacher(teacher_id: UUID, principal: Principal = Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    service = TeacherService(db)
    teacher = await service.get_or_404(teacher_id)
    if teacher.user_id != principal.id:
        await ensure_school_access(db, principal, teacher.school_id, roles=STAFF_ROLES)
    data = format_teacher(teacher, await service.with_user(teacher))
    data.update(await service.assignments(teacher.id))
    return data


@router.put("/{teacher_id}")
async def update_teacher(teacher_id: UUID, payload: TeacherUpdate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    service = TeacherService(db)
    teacher = await service.get_or_404(teacher_id)
    await ensure_school_access(db, principal, teacher.school_id, roles=SCHOOL_MANAGER_ROLES)
    data = {k: (v.value if hasattr(v, "value") else v) for k, v in payload.changes().items()}
    teacher = await service.update(teacher, data)
    return {"message": "Teacher updated successfully", "teacher": format_teacher(teacher, await service.with_user(teacher))}

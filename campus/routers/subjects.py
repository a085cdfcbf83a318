from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES
from ..schemas.academics import SubjectCreate, SubjectUpdate
from ..services.class_service import SubjectService, format_subject
from ..services.school_service import SchoolService

router = APIRouter(prefix="/api/subjects", tags=["Subjects"])


@router.get("/school/{school_id}")
async def list_subjects(school_id: UUID, principal: Principal = Depends(get_current_user),
                        db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, school_id)
    subjects = await SubjectService(db).list_subjects(school_id)
    return {"subjects": [format_subject(s) for s in subjects]}


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_subject(school_id: UUID, payload: SubjectCreate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    subject = await SubjectService(db).create_subject(school_id, payload.model_dump())
    return {"id": str(subject.id), "message": "Subject created successfully", "subject": format_subject(subject)}


@router.put("/{subject_id}")
async def update_subject(subject_id: UUID, payload: SubjectUpdate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    service = SubjectService(db)
    subject = await service.get_or_404(subject_id)
    await ensure_school_access(db, principal, subject.school_id, roles=SCHOOL_MANAGER_ROLES)
    subject = await service.update(subject, payload.changes())
    return {"message": "Subject updated successfully", "subject": format_subject(subject)}

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES
from ..schemas.school import TermCreate
from ..services.school_service import SchoolService, format_term

router = APIRouter(prefix="/api/terms", tags=["Academic Terms"])


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_term(school_id: UUID, payload: TermCreate, principal: Principal = Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    await service.get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    term = await service.create_term(school_id, payload.model_dump())
    return {"id": str(term.id), "message": "Academic term created successfully", "term": format_term(term)}


@router.get("/school/{school_id}")
async def list_terms(school_id: UUID, principal: Principal = Depends(get_current_user),
                     db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, school_id)
    terms = await SchoolService(db).list_terms(school_id)
    return {"terms": [format_term(t) for t in terms]}

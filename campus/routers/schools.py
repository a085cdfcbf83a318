from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user, require_admin
from ..core.database import get_db
from ..models.shared.school import SchoolStatus, SchoolType
from ..models.user import SCHOOL_MANAGER_ROLES
from ..schemas.school import SchoolCreate, SchoolStatusUpdate, SchoolUpdate, SubscriptionUpdate
from ..services.auth_service import AuthService
from ..services.school_service import SchoolService, format_school
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/schools", tags=["Schools"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_school(payload: SchoolCreate, request: Request, db: AsyncSession = Depends(get_db)):
    """Register a school, optionally with its first administrator."""
    school, admin, membership = await SchoolService(db).create_school(payload.model_dump(), request)
    response = {
        "id": str(school.id),
        "message": "School created successfully",
        "school": format_school(school),
    }
    if admin is not None:
        response.update(AuthService(db).login_payload(admin, membership, school, "School created successfully"))
    return response


@router.get("")
async def list_schools(
    search: Optional[str] = Query(None),
    type: Optional[SchoolType] = Query(None),
    status: Optional[SchoolStatus] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    schools, total = await SchoolService(db).list_schools(
        search, type.value if type else None, status.value if status else None,
        pagination.page, pagination.limit,
    )
    return Paginator.create_response([format_school(s) for s in schools], pagination.page, pagination.limit, total)


@router.get("/search/public")
async def public_search(q: str = Query(""), db: AsyncSession = Depends(get_db)):
    """Public school lookup used by registration and login screens."""
    schools = await SchoolService(db).public_search(q)
    return {"schools": [format_school(s, detailed=False) for s in schools]}


@router.get("/{school_id}")
async def get_school(school_id: UUID, principal: Principal = Depends(get_current_user),
                     db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    if not principal.is_admin:
        await ensure_school_access(db, principal, school_id)
    return format_school(school)


@router.put("/{school_id}")
async def update_school(school_id: UUID, payload: SchoolUpdate, principal: Principal = Depends(get_current_user),
                        db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    school = await service.update_school(school, payload.changes())
    return {"message": "School updated successfully", "school": format_school(school)}


@router.put("/{school_id}/subscription")
async def update_subscription(school_id: UUID, payload: SubscriptionUpdate,
                              principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    school = await service.set_subscription(school, payload.plan.value, payload.expires_at)
    return {"message": "Subscription updated successfully", "school": format_school(school)}


@router.patch("/{school_id}/status")
async def update_status(school_id: UUID, payload: SchoolStatusUpdate,
                        principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    school = await service.set_status(school, payload.status.value)
    return {"message": "School status updated successfully", "school": format_school(school)}


@router.get("/{school_id}/stats")
async def school_stats(school_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    await service.get_or_404(school_id)
    if not principal.is_admin:
        await ensure_school_access(db, principal, school_id)
    return await service.stats(school_id)

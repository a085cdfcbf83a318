from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_principal, get_current_user
from ..core.database import get_db
from ..models.tenant_specific.communication import TargetAudience
from ..models.user import SCHOOL_MANAGER_ROLES, UserRole
from ..schemas.communication import AnnouncementCreate, AnnouncementUpdate
from ..services.announcement_service import AnnouncementService, format_announcement
from ..services.school_service import SchoolService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/announcements", tags=["Announcements"])

AUTHOR_ROLES = SCHOOL_MANAGER_ROLES | {UserRole.TEACHER.value}


async def _ensure_author_or_manager(db: AsyncSession, principal: Principal, announcement):
    if announcement.author_id == principal.id:
        await ensure_school_access(db, principal, announcement.school_id)
    else:
        await ensure_school_access(db, principal, announcement.school_id, roles=SCHOOL_MANAGER_ROLES)


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_announcement(school_id: UUID, payload: AnnouncementCreate,
                              principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=AUTHOR_ROLES)
    announcement = await AnnouncementService(db).publish(school_id, principal.id, payload.model_dump())
    return {"id": str(announcement.id), "message": "Announcement created successfully",
            "announcement": format_announcement(announcement)}


@router.get("/school/{school_id}")
async def list_announcements(
    school_id: UUID,
    audience: Optional[TargetAudience] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Active announcements of a school, limited to the audiences the caller belongs to."""
    membership = await ensure_school_access(db, principal, school_id)
    viewer_role = membership.role if membership else principal.role
    items, total = await AnnouncementService(db).list_for_school(
        school_id, viewer_role, audience.value if audience else None, pagination.page, pagination.limit
    )
    return Paginator.create_response([format_announcement(a) for a in items], pagination.page, pagination.limit, total)


@router.put("/{announcement_id}")
async def update_announcement(announcement_id: UUID, payload: AnnouncementUpdate,
                              principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    service = AnnouncementService(db)
    announcement = await service.get_or_404(announcement_id)
    await _ensure_author_or_manager(db, principal, announcement)
    announcement = await service.amend(announcement, payload.changes())
    return {"message": "Announcement updated successfully", "announcement": format_announcement(announcement)}


@router.delete("/{announcement_id}")
async def delete_announcement(announcement_id: UUID, principal: Principal = Depends(get_current_user),
                              db: AsyncSession = Depends(get_db)):
    service = AnnouncementService(db)
    announcement = await service.get_or_404(announcement_id)
    await _ensure_author_or_manager(db, principal, announcement)
    await service.soft_delete(announcement)
    return {"message": "Announcement deleted successfully"}

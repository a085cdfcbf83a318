from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_principal, get_current_user
from ..core.database import get_db
from ..models.tenant_specific.communication import EventType
from ..models.user import SCHOOL_MANAGER_ROLES, UserRole
from ..schemas.communication import EventCreate, EventUpdate
from ..services.announcement_service import EventService, format_event
from ..services.school_service import SchoolService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/events", tags=["Events"])

ORGANISER_ROLES = SCHOOL_MANAGER_ROLES | {UserRole.TEACHER.value}


async def _ensure_organiser(db: AsyncSession, principal: Principal, event):
    if event.created_by == principal.id:
        await ensure_school_access(db, principal, event.school_id)
    else:
        await ensure_school_access(db, principal, event.school_id, roles=SCHOOL_MANAGER_ROLES)


@router.post("/school/{school_id}", status_code=status.HTTP_201_CREATED)
async def create_event(school_id: UUID, payload: EventCreate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=ORGANISER_ROLES)
    event = await EventService(db).schedule(school_id, principal.id, payload.model_dump())
    return {"id": str(event.id), "message": "Event created successfully", "event": format_event(event)}


@router.get("/school/{school_id}")
async def list_events(
    school_id: UUID,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    event_type: Optional[EventType] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await ensure_school_access(db, principal, school_id)
    items, total = await EventService(db).list_for_school(
        school_id, start_date, end_date, event_type.value if event_type else None,
        pagination.page, pagination.limit,
    )
    return Paginator.create_response([format_event(e) for e in items], pagination.page, pagination.limit, total)


@router.put("/{event_id}")
async def update_event(event_id: UUID, payload: EventUpdate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = EventService(db)
    event = await service.get_or_404(event_id)
    await _ensure_organiser(db, principal, event)
    event = await service.amend(event, payload.changes())
    return {"message": "Event updated successfully", "event": format_event(event)}


@router.delete("/{event_id}")
async def delete_event(event_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = EventService(db)
    event = await service.get_or_404(event_id)
    await _ensure_organiser(db, principal, event)
    await service.soft_delete(event)
    return {"message": "Event deleted successfully"}

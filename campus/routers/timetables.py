from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES
from ..schemas.academics import TimetableCreate, TimetableUpdate
from ..services.class_service import ClassService
from ..services.timetable_service import TimetableService, format_entry, group_by_day

router = APIRouter(prefix="/api/timetables", tags=["Timetables"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_entry(payload: TimetableCreate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    school_class = await ClassService(db).get_or_404(payload.class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=SCHOOL_MANAGER_ROLES)
    entry = await TimetableService(db).create_entry(school_class, payload.model_dump())
    return {"id": str(entry.id), "message": "Timetable entry created successfully", "entry": format_entry(entry)}


@router.get("/class/{class_id}")
async def class_timetable(class_id: UUID, principal: Principal = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db)):
    school_class = await ClassService(db).get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id)
    rows = await TimetableService(db).for_class(class_id)
    return {"class_id": str(class_id), "class_name": school_class.name, "timetable": group_by_day(rows)}


@router.put("/{entry_id}")
async def update_entry(entry_id: UUID, payload: TimetableUpdate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = TimetableService(db)
    entry = await service.get_or_404(entry_id)
    school_class = await ClassService(db).get_or_404(entry.class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=SCHOOL_MANAGER_ROLES)
    entry = await service.update_entry(entry, school_class, payload.changes())
    return {"message": "Timetable entry updated successfully", "entry": format_entry(entry)}


@router.delete("/{entry_id}")
async def delete_entry(entry_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    service = TimetableService(db)
    entry = await service.get_or_404(entry_id)
    school_class = await ClassService(db).get_or_404(entry.class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=SCHOOL_MANAGER_ROLES)
    await service.soft_delete(entry)
    return {"message": "Timetable entry deleted successfully"}

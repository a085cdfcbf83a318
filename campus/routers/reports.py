from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES, STAFF_ROLES
from ..services.class_service import ClassService
from ..services.report_service import ReportService
from ..services.school_service import SchoolService
from ..services.student_service import StudentService

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/student/{student_id}/report-card")
async def report_card(student_id: UUID, term_id: Optional[UUID] = Query(None),
                      principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    return await ReportService(db).report_card(student, term_id)


@router.get("/class/{class_id}/performance")
async def class_performance(class_id: UUID, term_id: Optional[UUID] = Query(None),
                            principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    school_class = await ClassService(db).get_or_404(class_id)
    await ensure_school_access(db, principal, school_class.school_id, roles=STAFF_ROLES)
    return await ReportService(db).class_performance(school_class, term_id)


@router.get("/school/{school_id}/analytics")
async def school_analytics(school_id: UUID, term_id: Optional[UUID] = Query(None),
                           principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await SchoolService(db).get_or_404(school_id)
    if not principal.is_admin:
        await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)
    return await ReportService(db).school_analytics(school_id, term_id)

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, get_current_principal, require_admin, require_roles
from ..core.database import get_db
from ..core.exceptions import PermissionDenied
from ..services.dashboard_service import DashboardService

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/student")
async def student_dashboard(principal: Principal = Depends(require_roles("student")),
                            db: AsyncSession = Depends(get_db)):
    return await DashboardService(db).student(principal)


@router.get("/parent")
async def parent_dashboard(principal: Principal = Depends(require_roles("parent")),
                           db: AsyncSession = Depends(get_db)):
    return await DashboardService(db).parent(principal)


@router.get("/teacher")
async def teacher_dashboard(principal: Principal = Depends(require_roles("teacher")),
                            db: AsyncSession = Depends(get_db)):
    return await DashboardService(db).teacher(principal)


@router.get("/school")
async def school_dashboard(
    principal: Principal = Depends(require_roles("school_admin", "principal", "staff", "super_admin")),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService(db).school(principal)


@router.get("/admin")
async def admin_dashboard(principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await DashboardService(db).admin(principal)


@router.get("/guest")
async def guest_dashboard(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db)):
    if not principal.is_guest:
        raise PermissionDenied("Insufficient permissions", required=["guest"], current=principal.role)
    return await DashboardService(db).guest(principal)

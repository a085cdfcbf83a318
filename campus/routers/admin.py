from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, require_admin
from ..core.database import get_db
from ..schemas.communication import BroadcastRequest
from ..schemas.school import FeatureUpdate, SubscriptionUpdate
from ..services.admin_service import AdminService, format_log
from ..services.school_service import SchoolService, format_school
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/admin", tags=["Platform Admin"])


@router.get("/overview")
async def overview(principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await AdminService(db).overview()


@router.put("/schools/{school_id}/subscription")
async def update_subscription(school_id: UUID, payload: SubscriptionUpdate,
                              principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    school = await service.set_subscription(school, payload.plan.value, payload.expires_at)
    return {"message": "Subscription updated successfully", "school": format_school(school)}


@router.get("/logs")
async def system_logs(
    action: Optional[str] = Query(None),
    user_id: Optional[UUID] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items, total = await AdminService(db).logs(action, user_id, start_date, end_date,
                                               pagination.page, pagination.limit)
    return Paginator.create_response([format_log(e) for e in items], pagination.page, pagination.limit, total)


@router.put("/features/{school_id}")
async def update_features(school_id: UUID, payload: FeatureUpdate,
                          principal: Principal = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    service = SchoolService(db)
    school = await service.get_or_404(school_id)
    school = await service.set_features(school, payload.features)
    return {"message": "Features updated successfully", "features": school.features}


@router.post("/broadcast")
async def broadcast(payload: BroadcastRequest, request: Request,
                    principal: Principal = Depends(require_admin),
                    db: AsyncSession = Depends(get_db)):
    sent = await AdminService(db).broadcast(
        principal.id, payload.title, payload.message, payload.target_audience, payload.type, request
    )
    return {"message": "Broadcast sent successfully", "recipients": sent}

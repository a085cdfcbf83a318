from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, get_current_user
from ..core.database import get_db
from ..core.exceptions import PermissionDenied
from ..services.notification_service import NotificationService, format_notification
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _ensure_own(principal: Principal, user_id: UUID):
    if user_id != principal.id and not principal.is_super_admin:
        raise PermissionDenied("You can only access your own notifications")


@router.get("/user/{user_id}")
async def list_notifications(
    user_id: UUID,
    unread_only: bool = Query(False),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_own(principal, user_id)
    items, total = await NotificationService(db).list_for_user(user_id, unread_only, pagination.page, pagination.limit)
    return Paginator.create_response([format_notification(n) for n in items], pagination.page, pagination.limit, total)


@router.patch("/{notification_id}/read")
async def mark_notification_read(notification_id: UUID, principal: Principal = Depends(get_current_user),
                                 db: AsyncSession = Depends(get_db)):
    notification = await NotificationService(db).mark_read(notification_id, principal.id)
    return {"message": "Notification marked as read", "notification": format_notification(notification)}


@router.patch("/user/{user_id}/read-all")
async def mark_all_read(user_id: UUID, principal: Principal = Depends(get_current_user),
                        db: AsyncSession = Depends(get_db)):
    _ensure_own(principal, user_id)
    updated = await NotificationService(db).mark_all_read(user_id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.get("/user/{user_id}/unread-count")
async def unread_count(user_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    _ensure_own(principal, user_id)
    return {"unread_count": await NotificationService(db).unread_count(user_id)}

from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import NotFoundError, PermissionDenied
from ..core.security import utcnow
from ..models.tenant_specific.communication import Notification
from ..utils.formatting import iso


class NotificationService(BaseService[Notification]):
    resource_name = "Notification"

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str = "info",
        data: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Stage a notification; the caller's commit persists it."""
        notification = Notification(user_id=user_id, title=title, message=message, type=type, data=data or {})
        self.db.add(notification)
        return notification

    def notify_many(self, user_ids: Iterable[UUID], title: str, message: str, type: str = "info",
                    data: Optional[Dict[str, Any]] = None) -> int:
        count = 0
        for user_id in set(user_ids):
            self.notify(user_id, title, message, type, data)
            count += 1
        return count

    async def list_for_user(self, user_id: UUID, unread_only: bool, page: int, limit: int):
        stmt = self.base_query().where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read == False)
        return await self.paginate(stmt.order_by(Notification.created_at.desc()), page, limit)

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.get(notification_id)
        if notification is None:
            raise NotFoundError("Notification")
        if notification.user_id != user_id:
            raise PermissionDenied("Cannot modify another user's notification")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.db.commit()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)
            .values(is_read=True, read_at=utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0

    async def unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Notification).where(
                Notification.user_id == user_id,
                Notification.is_read == False,
                Notification.is_deleted == False,
            )
        )
        return result.scalar() or 0


def format_notification(n: Notification) -> dict:
    return {
        "id": str(n.id),
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "data": n.data or {},
        "is_read": n.is_read,
        "read_at": iso(n.read_at),
        "created_at": iso(n.created_at),
    }

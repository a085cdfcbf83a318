from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from fastapi import Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .audit_service import AuditService
from .base_service import BaseService
from .notification_service import NotificationService
from ..models.shared.audit import SystemLog
from ..models.shared.school import School
from ..models.user import User, SchoolUser, ADMIN_ROLES, SCHOOL_MANAGER_ROLES
from ..models.tenant_specific.student import Student
from ..utils.formatting import iso, sid

logger = logging.getLogger(__name__)


class AdminService(BaseService[SystemLog]):
    resource_name = "Log entry"

    def __init__(self, db: AsyncSession):
        super().__init__(SystemLog, db)

    async def _grouped(self, column, model) -> Dict[str, int]:
        result = await self.db.execute(
            select(column, func.count()).select_from(model).where(model.is_deleted == False).group_by(column)
        )
        return {key: count for key, count in result.all()}

    async def overview(self) -> Dict[str, Any]:
        schools_by_status = await self._grouped(School.status, School)
        schools_by_plan = await self._grouped(School.subscription_plan, School)
        users_by_role = await self._grouped(User.role, User)
        students = (await self.db.execute(
            select(func.count()).select_from(Student).where(Student.is_deleted == False)
        )).scalar() or 0
        recent = (await self.db.execute(
            select(School).where(School.is_deleted == False).order_by(School.created_at.desc()).limit(5)
        )).scalars().all()
        return {
            "schools": {
                "total": sum(schools_by_status.values()),
                "by_status": schools_by_status,
                "by_plan": schools_by_plan,
            },
            "users": {"total": sum(users_by_role.values()), "by_role": users_by_role},
            "students": students,
            "recent_schools": [
                {"id": str(s.id), "name": s.name, "code": s.code, "status": s.status,
                 "created_at": iso(s.created_at)}
                for s in recent
            ],
        }

    async def logs(self, action: Optional[str], user_id: Optional[UUID], start: Optional[datetime],
                   end: Optional[datetime], page: int, limit: int):
        stmt = self.base_query()
        if action:
            stmt = stmt.where(SystemLog.action == action)
        if user_id:
            stmt = stmt.where(SystemLog.user_id == user_id)
        if start:
            stmt = stmt.where(SystemLog.created_at >= start)
        if end:
            stmt = stmt.where(SystemLog.created_at <= end)
        return await self.paginate(stmt.order_by(SystemLog.created_at.desc()), page, limit)

    async def broadcast(self, sender_id: UUID, title: str, message: str, target: str, type: str,
                        request: Optional[Request] = None) -> int:
        if target == "admins":
            stmt = select(User.id).where(User.role.in_(ADMIN_ROLES), User.is_active == True)
        elif target == "schools":
            stmt = (
                select(SchoolUser.user_id)
                .where(SchoolUser.role.in_(SCHOOL_MANAGER_ROLES), SchoolUser.is_active == True)
                .distinct()
            )
        else:
            stmt = select(User.id).where(User.is_active == True, User.is_deleted == False)
        user_ids = (await self.db.execute(stmt)).scalars().all()
        sent = NotificationService(self.db).notify_many(user_ids, title, message, type, {"broadcast": True})
        AuditService(self.db).log("broadcast", sender_id, {"target": target, "recipients": sent}, request)
        await self.db.commit()
        logger.info(f"Broadcast '{title}' sent to {sent} users")
        return sent


def format_log(entry: SystemLog) -> dict:
    return {
        "id": str(entry.id),
        "action": entry.action,
        "user_id": sid(entry.user_id),
        "details": entry.details or {},
        "ip_address": entry.ip_address,
        "created_at": iso(entry.created_at),
    }

from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .notification_service import NotificationService
from ..core.exceptions import ValidationException
from ..core.security import utcnow, ensure_utc
from ..models.user import SchoolUser, STAFF_ROLES, SCHOOL_MANAGER_ROLES
from ..models.tenant_specific.communication import Announcement, Event, TargetAudience
from ..utils.formatting import iso

logger = logging.getLogger(__name__)

AUDIENCE_ROLES: Dict[str, Set[str]] = {
    TargetAudience.STUDENTS.value: {"student"},
    TargetAudience.TEACHERS.value: {"teacher"},
    TargetAudience.PARENTS.value: {"parent"},
    TargetAudience.STAFF.value: set(STAFF_ROLES),
}

ROLE_AUDIENCES: Dict[str, List[str]] = {
    "student": ["all", "students"],
    "parent": ["all", "parents"],
    "teacher": ["all", "teachers", "staff"],
    "staff": ["all", "staff"],
    "guest": ["all"],
}


def visible_audiences(role: str) -> Optional[List[str]]:
    """Audiences a role may read; None means every audience."""
    if role in SCHOOL_MANAGER_ROLES or role == "super_admin":
        return None
    return ROLE_AUDIENCES.get(role, ["all"])


class AnnouncementService(BaseService[Announcement]):
    resource_name = "Announcement"

    def __init__(self, db: AsyncSession):
        super().__init__(Announcement, db)

    async def publish(self, school_id: UUID, author_id: UUID, data: Dict[str, Any]) -> Announcement:
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        announcement = Announcement(school_id=school_id, author_id=author_id, **data)
        self.db.add(announcement)
        await self.db.flush()
        if announcement.is_published:
            await self._notify_audience(announcement)
        await self.db.commit()
        await self.db.refresh(announcement)
        return announcement

    async def _notify_audience(self, announcement: Announcement) -> int:
        stmt = select(SchoolUser.user_id).where(
            SchoolUser.school_id == announcement.school_id,
            SchoolUser.is_active == True,
            SchoolUser.user_id != announcement.author_id,
        )
        roles = AUDIENCE_ROLES.get(announcement.target_audience)
        if roles is not None:
            stmt = stmt.where(SchoolUser.role.in_(roles))
        user_ids = (await self.db.execute(stmt)).scalars().all()
        sent = NotificationService(self.db).notify_many(
            user_ids, announcement.title, announcement.content[:200], "announcement",
            {"announcement_id": str(announcement.id), "priority": announcement.priority},
        )
        logger.info(f"Announcement {announcement.id} notified {sent} users")
        return sent

    async def list_for_school(self, school_id: UUID, viewer_role: str, audience: Optional[str],
                              page: int, limit: int):
        now = utcnow()
        stmt = self.base_query().where(
            Announcement.school_id == school_id,
            or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
        )
        allowed = visible_audiences(viewer_role)
        if allowed is not None:
            stmt = stmt.where(Announcement.target_audience.in_(allowed), Announcement.is_published == True)
        if audience:
            stmt = stmt.where(Announcement.target_audience == audience)
        return await self.paginate(stmt.order_by(Announcement.created_at.desc()), page, limit)

    async def latest(self, school_id: UUID, viewer_role: str, limit: int = 5) -> List[Announcement]:
        items, _ = await self.list_for_school(school_id, viewer_role, None, 1, limit)
        return items

    async def amend(self, announcement: Announcement, data: Dict[str, Any]) -> Announcement:
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        return await self.update(announcement, data)


class EventService(BaseService[Event]):
    resource_name = "Event"

    def __init__(self, db: AsyncSession):
        super().__init__(Event, db)

    async def schedule(self, school_id: UUID, created_by: UUID, data: Dict[str, Any]) -> Event:
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        return await self.create({"school_id": school_id, "created_by": created_by, **data})

    async def list_for_school(self, school_id: UUID, start: Optional[datetime], end: Optional[datetime],
                              event_type: Optional[str], page: int, limit: int):
        stmt = self.base_query().where(Event.school_id == school_id)
        if start:
            stmt = stmt.where(or_(Event.end_date >= start, Event.start_date >= start))
        if end:
            stmt = stmt.where(Event.start_date <= end)
        if event_type:
            stmt = stmt.where(Event.event_type == event_type)
        return await self.paginate(stmt.order_by(Event.start_date), page, limit)

    async def upcoming(self, school_id: UUID, limit: int = 5) -> List[Event]:
        result = await self.db.execute(
            self.base_query()
            .where(Event.school_id == school_id, Event.start_date >= utcnow())
            .order_by(Event.start_date)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def amend(self, event: Event, data: Dict[str, Any]) -> Event:
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        start = data.get("start_date", event.start_date)
        end = data.get("end_date", event.end_date)
        if start and end and ensure_utc(end) < ensure_utc(start):
            raise ValidationException("end_date must not be before start_date", field="end_date")
        return await self.update(event, data)


def format_announcement(a: Announcement) -> dict:
    return {
        "id": str(a.id),
        "school_id": str(a.school_id),
        "author_id": str(a.author_id),
        "title": a.title,
        "content": a.content,
        "target_audience": a.target_audience,
        "priority": a.priority,
        "is_published": a.is_published,
        "expires_at": iso(a.expires_at),
        "created_at": iso(a.created_at),
    }


def format_event(e: Event) -> dict:
    return {
        "id": str(e.id),
        "school_id": str(e.school_id),
        "title": e.title,
        "description": e.description,
        "event_type": e.event_type,
        "start_date": iso(e.start_date),
        "end_date": iso(e.end_date),
        "location": e.location,
        "is_all_day": e.is_all_day,
        "created_by": str(e.created_by),
    }

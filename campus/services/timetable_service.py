from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import CampusException, NotFoundError, ValidationException
from ..models.tenant_specific.academics import SchoolClass, Subject
from ..models.tenant_specific.teacher import Teacher
from ..models.tenant_specific.timetable import Timetable
from ..utils.formatting import sid

DAY_NAMES = {1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday", 5: "Friday", 6: "Saturday", 7: "Sunday"}


class TimetableService(BaseService[Timetable]):
    resource_name = "Timetable entry"

    def __init__(self, db: AsyncSession):
        super().__init__(Timetable, db)

    async def _check_refs(self, school_class: SchoolClass, data: Dict[str, Any]):
        if data.get("subject_id"):
            subject = await self.db.get(Subject, data["subject_id"])
            if subject is None or subject.school_id != school_class.school_id:
                raise NotFoundError("Subject")
        if data.get("teacher_id"):
            teacher = await self.db.get(Teacher, data["teacher_id"])
            if teacher is None or teacher.school_id != school_class.school_id:
                raise NotFoundError("Teacher")

    async def _check_overlap(self, class_id: UUID, teacher_id: Optional[UUID], day: int, start: str, end: str,
                             exclude_id: Optional[UUID] = None):
        owners = [Timetable.class_id == class_id]
        if teacher_id:
            owners.append(Timetable.teacher_id == teacher_id)
        stmt = self.base_query().where(
            Timetable.day_of_week == day,
            Timetable.start_time < end,
            Timetable.end_time > start,
            or_(*owners),
        )
        if exclude_id:
            stmt = stmt.where(Timetable.id != exclude_id)
        clash = (await self.db.execute(stmt)).scalars().first()
        if clash is not None:
            who = "class" if clash.class_id == class_id else "teacher"
            raise CampusException(
                f"Time slot overlaps an existing {who} period ({clash.start_time}-{clash.end_time})", 409
            )

    async def create_entry(self, school_class: SchoolClass, data: Dict[str, Any]) -> Timetable:
        await self._check_refs(school_class, data)
        await self._check_overlap(school_class.id, data.get("teacher_id"), data["day_of_week"],
                                  data["start_time"], data["end_time"])
        return await self.create(data)

    async def update_entry(self, entry: Timetable, school_class: SchoolClass, data: Dict[str, Any]) -> Timetable:
        await self._check_refs(school_class, data)
        merged = {
            "teacher_id": data.get("teacher_id", entry.teacher_id),
            "day_of_week": data.get("day_of_week", entry.day_of_week),
            "start_time": data.get("start_time", entry.start_time),
            "end_time": data.get("end_time", entry.end_time),
        }
        if merged["end_time"] <= merged["start_time"]:
            raise ValidationException("end_time must be after start_time", field="end_time")
        await self._check_overlap(entry.class_id, merged["teacher_id"], merged["day_of_week"],
                                  merged["start_time"], merged["end_time"], exclude_id=entry.id)
        return await self.update(entry, data)

    async def for_class(self, class_id: UUID) -> List[tuple]:
        result = await self.db.execute(
            select(Timetable, Subject.name)
            .join(Subject, Subject.id == Timetable.subject_id)
            .where(Timetable.class_id == class_id, Timetable.is_deleted == False)
            .order_by(Timetable.day_of_week, Timetable.start_time)
        )
        return list(result.all())


def format_entry(entry: Timetable, subject_name: Optional[str] = None) -> dict:
    return {
        "id": str(entry.id),
        "class_id": str(entry.class_id),
        "subject_id": str(entry.subject_id),
        "subject_name": subject_name,
        "teacher_id": sid(entry.teacher_id),
        "day_of_week": entry.day_of_week,
        "day": DAY_NAMES.get(entry.day_of_week),
        "start_time": entry.start_time,
        "end_time": entry.end_time,
        "room": entry.room,
    }


def group_by_day(rows: List[tuple]) -> Dict[str, list]:
    days: Dict[str, list] = {}
    for entry, subject_name in rows:
        days.setdefault(DAY_NAMES[entry.day_of_week], []).append(format_entry(entry, subject_name))
    return days

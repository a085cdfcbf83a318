from typing import Dict, List, Optional
from uuid import UUID
from datetime import date

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import NotFoundError
from ..models.tenant_specific.academics import SchoolClass
from ..models.tenant_specific.attendance import Attendance, AttendanceStatus
from ..models.tenant_specific.student import Student, StudentStatus
from ..utils.formatting import iso


def attendance_rate(counts: Dict[str, int]) -> float:
    """Share of records where the student turned up, late included."""
    total = sum(counts.get(status.value, 0) for status in AttendanceStatus)
    if total == 0:
        return 0.0
    attended = counts.get(AttendanceStatus.PRESENT.value, 0) + counts.get(AttendanceStatus.LATE.value, 0)
    return round(attended / total * 100, 2)


class AttendanceService(BaseService[Attendance]):
    resource_name = "Attendance record"

    def __init__(self, db: AsyncSession):
        super().__init__(Attendance, db)

    async def mark_class(self, school_class: SchoolClass, attendance_date: date, entries: List[dict],
                         recorded_by: UUID) -> List[Attendance]:
        student_ids = [entry["student_id"] for entry in entries]
        result = await self.db.execute(
            select(Student.id).where(
                Student.id.in_(student_ids),
                Student.school_id == school_class.school_id,
                Student.is_deleted == False,
            )
        )
        known = set(result.scalars().all())
        missing = [str(sid) for sid in student_ids if sid not in known]
        if missing:
            raise NotFoundError(f"Student {missing[0]}")

        result = await self.db.execute(
            select(Attendance).where(Attendance.student_id.in_(student_ids), Attendance.date == attendance_date)
        )
        existing = {record.student_id: record for record in result.scalars().all()}

        records = []
        for entry in entries:
            status = entry["status"].value if hasattr(entry["status"], "value") else entry["status"]
            record = existing.get(entry["student_id"])
            if record is None:
                record = Attendance(student_id=entry["student_id"], date=attendance_date)
                self.db.add(record)
                existing[entry["student_id"]] = record
            record.class_id = school_class.id
            record.status = status
            record.remarks = entry.get("remarks")
            record.recorded_by = recorded_by
            record.is_deleted = False
            records.append(record)
        await self.db.commit()
        return records

    async def class_on_date(self, class_id: UUID, attendance_date: date) -> List[dict]:
        result = await self.db.execute(
            select(Student, Attendance)
            .outerjoin(Attendance, (Attendance.student_id == Student.id) & (Attendance.date == attendance_date)
                       & (Attendance.is_deleted == False))
            .where(Student.class_id == class_id, Student.is_deleted == False,
                   Student.status == StudentStatus.ACTIVE.value)
            .order_by(Student.last_name, Student.first_name)
        )
        return [
            {
                "student_id": str(student.id),
                "student_number": student.student_id,
                "first_name": student.first_name,
                "last_name": student.last_name,
                "status": record.status if record else None,
                "remarks": record.remarks if record else None,
            }
            for student, record in result.all()
        ]

    async def status_counts(self, student_id: Optional[UUID] = None, class_ids: Optional[List[UUID]] = None,
                            start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, int]:
        stmt = select(Attendance.status, func.count()).where(Attendance.is_deleted == False)
        if student_id is not None:
            stmt = stmt.where(Attendance.student_id == student_id)
        if class_ids is not None:
            stmt = stmt.where(Attendance.class_id.in_(class_ids))
        if start_date:
            stmt = stmt.where(Attendance.date >= start_date)
        if end_date:
            stmt = stmt.where(Attendance.date <= end_date)
        result = await self.db.execute(stmt.group_by(Attendance.status))
        counts = {status.value: 0 for status in AttendanceStatus}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def student_summary(self, student_id: UUID, start_date: Optional[date] = None,
                              end_date: Optional[date] = None) -> dict:
        counts = await self.status_counts(student_id=student_id, start_date=start_date, end_date=end_date)
        return {
            "student_id": str(student_id),
            "total_days": sum(counts.values()),
            **counts,
            "attendance_rate": attendance_rate(counts),
        }

    async def recent(self, student_id: UUID, limit: int = 10) -> List[Attendance]:
        result = await self.db.execute(
            self.base_query()
            .where(Attendance.student_id == student_id)
            .order_by(Attendance.date.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


def format_attendance(record: Attendance) -> dict:
    return {
        "id": str(record.id),
        "student_id": str(record.student_id),
        "class_id": str(record.class_id),
        "date": iso(record.date),
        "status": record.status,
        "remarks": record.remarks,
    }

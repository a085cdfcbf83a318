# campus/services/dashboard_service.py
"""Role dashboards. Each summary is cached per principal."""
from datetime import date
import math
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .admin_service import AdminService
from .announcement_service import AnnouncementService, EventService, format_announcement, format_event
from .attendance_service import AttendanceService, attendance_rate
from .auth_service import AuthService
from .fee_service import FeeService
from .grade_service import GradeService, format_grade
from .notification_service import NotificationService
from .parent_link_service import ParentLinkService
from .school_service import SchoolService, format_school
from .teacher_service import TeacherService
from .timetable_service import format_entry
from ..core.auth import Principal
from ..core.cache import cache, dashboard_key
from ..core.exceptions import NotFoundError, PermissionDenied
from ..models.shared.school import School
from ..models.tenant_specific.academics import SchoolClass, ClassSubject
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.timetable import Timetable
from ..utils.formatting import iso
from ..core.security import utcnow
from ..utils.navigation import GUEST_BANNER, guest_limitations

GUEST_WELCOME = "Welcome guest! Limited demo access enabled."


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _cached(self, key: str, builder):
        cached = await cache.get(key)
        if cached is not None:
            return cached
        data = await builder()
        await cache.set(key, data)
        return data

    async def _school_feed(self, school_id: Optional[UUID], role: str) -> Dict[str, Any]:
        if school_id is None:
            return {"announcements": [], "upcoming_events": []}
        announcements = await AnnouncementService(self.db).latest(school_id, role)
        events = await EventService(self.db).upcoming(school_id)
        return {
            "announcements": [format_announcement(a) for a in announcements],
            "upcoming_events": [format_event(e) for e in events],
        }

    async def student(self, principal: Principal) -> Dict[str, Any]:
        async def build():
            result = await self.db.execute(
                select(Student).where(Student.user_id == principal.id, Student.is_deleted == False)
            )
            student = result.scalars().first()
            unread = await NotificationService(self.db).unread_count(principal.id)
            if student is None:
                return {"profile": None, "unread_notifications": unread,
                        **await self._school_feed(principal.school_id, "student")}
            grades = await GradeService(self.db).for_student(student.id)
            return {
                "profile": {"id": str(student.id), "student_id": student.student_id,
                            "name": student.full_name, "class_id": str(student.class_id) if student.class_id else None},
                "attendance": await AttendanceService(self.db).student_summary(student.id),
                "recent_grades": [format_grade(g, name) for g, name in grades[-5:]],
                "fees": await FeeService(self.db).student_status(student),
                "unread_notifications": unread,
                **await self._school_feed(student.school_id, "student"),
            }
        return await self._cached(dashboard_key("student", principal.id), build)

    async def parent(self, principal: Principal) -> Dict[str, Any]:
        async def build():
            children = []
            school_id = principal.school_id
            for student, relationship_type, class_name in await ParentLinkService(self.db).children_of(principal.id):
                school_id = school_id or student.school_id
                attendance = await AttendanceService(self.db).student_summary(student.id)
                fees = await FeeService(self.db).student_status(student)
                grades = await GradeService(self.db).for_student(student.id)
                children.append({
                    "id": str(student.id),
                    "name": student.full_name,
                    "class_name": class_name,
                    "relationship": relationship_type,
                    "attendance_rate": attendance["attendance_rate"],
                    "fee_balance": fees["balance"],
                    "recent_grades": [format_grade(g, name) for g, name in grades[-3:]],
                })
            return {
                "children": children,
                "unread_notifications": await NotificationService(self.db).unread_count(principal.id),
                **await self._school_feed(school_id, "parent"),
            }
        return await self._cached(dashboard_key("parent", principal.id), build)

    async def teacher(self, principal: Principal) -> Dict[str, Any]:
        async def build():
            teachers = await TeacherService(self.db).for_user(principal.id)
            teacher_ids = [t.id for t in teachers]
            classes = []
            schedule = []
            subject_count = 0
            if teacher_ids:
                class_rows = await self.db.execute(
                    select(SchoolClass).where(SchoolClass.class_teacher_id.in_(teacher_ids),
                                              SchoolClass.is_deleted == False)
                )
                classes = [{"id": str(c.id), "name": c.name, "level": c.level} for c in class_rows.scalars().all()]
                today = date.today().isoweekday()
                slots = await self.db.execute(
                    select(Timetable).where(Timetable.teacher_id.in_(teacher_ids), Timetable.day_of_week == today,
                                            Timetable.is_deleted == False)
                    .order_by(Timetable.start_time)
                )
                schedule = [format_entry(t) for t in slots.scalars().all()]
                subject_rows = await self.db.execute(
                    select(ClassSubject.id).where(ClassSubject.teacher_id.in_(teacher_ids),
                                                  ClassSubject.is_deleted == False)
                )
                subject_count = len(subject_rows.all())
            school_id = principal.school_id or (teachers[0].school_id if teachers else None)
            return {
                "classes": classes,
                "subject_assignments": subject_count,
                "today_schedule": schedule,
                "unread_notifications": await NotificationService(self.db).unread_count(principal.id),
                **await self._school_feed(school_id, "teacher"),
            }
        return await self._cached(dashboard_key("teacher", principal.id), build)

    async def school(self, principal: Principal) -> Dict[str, Any]:
        school_id = principal.school_id
        if school_id is None:
            membership, _ = await AuthService(self.db).membership_for(principal.user)
            if membership is None:
                raise PermissionDenied("No active school for this account")
            school_id = membership.school_id
        school = await self.db.get(School, school_id)
        if school is None:
            raise NotFoundError("School")

        async def build():
            class_ids = (await self.db.execute(
                select(SchoolClass.id).where(SchoolClass.school_id == school_id, SchoolClass.is_deleted == False)
            )).scalars().all()
            today = date.today()
            counts = await AttendanceService(self.db).status_counts(class_ids=list(class_ids),
                                                                     start_date=today, end_date=today)
            return {
                "school": format_school(school, detailed=False),
                "stats": await SchoolService(self.db).stats(school_id),
                "attendance_today": {**counts, "attendance_rate": attendance_rate(counts)},
                "fees": await FeeService(self.db).school_summary(school_id),
                **await self._school_feed(school_id, "school_admin"),
            }
        return await self._cached(dashboard_key("school", school_id, principal.id), build)

    async def admin(self, principal: Principal) -> Dict[str, Any]:
        return await self._cached(dashboard_key("admin"), AdminService(self.db).overview)

    async def guest(self, principal: Principal) -> Dict[str, Any]:
        school = await self.db.get(School, principal.school_id) if principal.school_id else None
        feed = await self._school_feed(school.id if school else None, "guest")
        remaining = principal.expires_at - utcnow()
        return {
            "message": GUEST_WELCOME,
            "banner": GUEST_BANNER,
            "limitations": guest_limitations(max(1, math.ceil(remaining.total_seconds() / 3600))),
            "school": format_school(school, detailed=False) if school else None,
            "expires_at": iso(principal.expires_at),
            **feed,
        }

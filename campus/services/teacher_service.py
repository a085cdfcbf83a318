from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging
import secrets

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .delivery_service import dispatch
from ..core.cache import invalidate_school
from ..core.exceptions import CampusException, DuplicateError
from ..core.security import get_password_hash, utcnow
from ..models.user import User, SchoolUser, UserRole
from ..models.tenant_specific.academics import SchoolClass, Subject, ClassSubject
from ..models.tenant_specific.teacher import Teacher
from ..utils.formatting import iso, money

logger = logging.getLogger(__name__)


class TeacherService(BaseService[Teacher]):
    resource_name = "Teacher"

    def __init__(self, db: AsyncSession):
        super().__init__(Teacher, db)

    async def list_teachers(self, school_id: UUID, status: Optional[str], search: Optional[str],
                            page: int, limit: int) -> Tuple[List[Tuple[Teacher, User]], int]:
        stmt = (
            select(Teacher, User)
            .join(User, User.id == Teacher.user_id)
            .where(Teacher.school_id == school_id, Teacher.is_deleted == False)
        )
        if status:
            stmt = stmt.where(Teacher.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(Teacher.employee_id).like(pattern),
            ))
        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(
            stmt.order_by(User.last_name).offset((page - 1) * limit).limit(limit)
        )
        return [(row[0], row[1]) for row in result.all()], total

    async def create_teacher(self, school_id: UUID, data: Dict[str, Any]) -> Tuple[Teacher, User]:
        existing = await self.db.execute(
            select(Teacher.id).where(Teacher.school_id == school_id, Teacher.employee_id == data["employee_id"])
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Employee ID already exists in this school", field="employee_id")

        result = await self.db.execute(select(User).where(User.email == data["email"].lower()))
        user = result.scalar_one_or_none()
        temporary_password = None
        if user is None:
            password = data.get("password")
            if not password:
                temporary_password = secrets.token_urlsafe(9)
                password = temporary_password
            user = User(
                email=data["email"].lower(),
                phone=data.get("phone"),
                password_hash=get_password_hash(password),
                role=UserRole.TEACHER.value,
                first_name=data["first_name"],
                last_name=data["last_name"],
            )
            self.db.add(user)
            await self.db.flush()
        else:
            existing = await self.db.execute(
                select(Teacher.id).where(Teacher.school_id == school_id, Teacher.user_id == user.id,
                                         Teacher.is_deleted == False)
            )
            if existing.scalar_one_or_none() is not None:
                raise CampusException("User is already a teacher in this school", 400)

        membership = await self.db.execute(
            select(SchoolUser).where(SchoolUser.school_id == school_id, SchoolUser.user_id == user.id)
        )
        if membership.scalar_one_or_none() is None:
            self.db.add(SchoolUser(school_id=school_id, user_id=user.id, role=UserRole.TEACHER.value,
                                   joined_at=utcnow()))

        teacher = Teacher(
            school_id=school_id,
            user_id=user.id,
            employee_id=data["employee_id"],
            qualification=data.get("qualification"),
            specialization=data.get("specialization"),
            hire_date=data.get("hire_date"),
            salary=data.get("salary"),
        )
        self.db.add(teacher)
        await self.db.commit()
        await self.db.refresh(teacher)
        await invalidate_school(school_id)

        if temporary_password:
            await dispatch("email", user.email, "Your Campus teacher account",
                           f"An account was created for you. Temporary password: {temporary_password}")
        return teacher, user

    async def with_user(self, teacher: Teacher) -> User:
        return await self.db.get(User, teacher.user_id)

    async def assignments(self, teacher_id: UUID) -> Dict[str, list]:
        classes = await self.db.execute(
            select(SchoolClass).where(SchoolClass.class_teacher_id == teacher_id, SchoolClass.is_deleted == False)
        )
        subjects = await self.db.execute(
            select(ClassSubject, SchoolClass.name, Subject.name)
            .join(SchoolClass, SchoolClass.id == ClassSubject.class_id)
            .join(Subject, Subject.id == ClassSubject.subject_id)
            .where(ClassSubject.teacher_id == teacher_id, ClassSubject.is_deleted == False)
        )
        return {
            "classes": [{"id": str(c.id), "name": c.name, "level": c.level} for c in classes.scalars().all()],
            "subjects": [
                {"class_id": str(cs.class_id), "class_name": class_name,
                 "subject_id": str(cs.subject_id), "subject_name": subject_name}
                for cs, class_name, subject_name in subjects.all()
            ],
        }

    async def for_user(self, user_id: UUID) -> List[Teacher]:
        result = await self.db.execute(
            self.base_query().where(Teacher.user_id == user_id)
        )
        return list(result.scalars().all())


def format_teacher(teacher: Teacher, user: Optional[User]) -> dict:
    return {
        "id": str(teacher.id),
        "school_id": str(teacher.school_id),
        "user_id": str(teacher.user_id),
        "employee_id": teacher.employee_id,
        "first_name": user.first_name if user else None,
        "last_name": user.last_name if user else None,
        "email": user.email if user else None,
        "phone": user.phone if user else None,
        "qualification": teacher.qualification,
        "specialization": teacher.specialization,
        "hire_date": iso(teacher.hire_date),
        "salary": money(teacher.salary) if teacher.salary is not None else None,
        "status": teacher.status,
        "created_at": iso(teacher.created_at),
    }

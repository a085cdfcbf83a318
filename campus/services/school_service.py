from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging
import re
import secrets

from fastapi import Request
from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from .audit_service import AuditService
from .base_service import BaseService
from ..core.cache import cache, school_stats_key, invalidate_school
from ..core.exceptions import CampusException, SchoolNotFound, ValidationException
from ..core.security import get_password_hash, utcnow
from ..models.shared.school import School, SchoolStatus, SchoolType, DEFAULT_FEATURES
from ..models.user import User, SchoolUser, UserRole
from ..models.tenant_specific.academics import AcademicTerm, SchoolClass
from ..models.tenant_specific.student import Student, StudentStatus
from ..models.tenant_specific.teacher import Teacher
from ..utils.formatting import iso

logger = logging.getLogger(__name__)


def code_prefix(name: str) -> str:
    return re.sub(r'[^A-Za-z0-9]', '', name).upper()[:6] or "SCHOOL"


class SchoolService(BaseService[School]):
    resource_name = "School"

    def __init__(self, db: AsyncSession):
        super().__init__(School, db)

    async def get_or_404(self, id: Any) -> School:
        school = await self.get(id)
        if school is None:
            raise SchoolNotFound()
        return school

    async def generate_code(self, name: str) -> str:
        prefix = code_prefix(name)
        while True:
            code = f"{prefix}{secrets.randbelow(900) + 100}"
            existing = await self.db.execute(select(School.id).where(School.code == code))
            if existing.scalar_one_or_none() is None:
                return code

    async def create_school(self, data: Dict[str, Any], request: Optional[Request] = None
                            ) -> Tuple[School, Optional[User], Optional[SchoolUser]]:
        admin_data = data.pop("admin", None)
        data["email"] = data["email"].lower()
        data["school_type"] = SchoolType(data["school_type"]).value

        existing = await self.db.execute(select(School.id).where(School.email == data["email"]))
        if existing.scalar_one_or_none() is not None:
            raise CampusException("School with this email already exists", 400)
        if admin_data:
            existing = await self.db.execute(select(User.id).where(User.email == admin_data["email"].lower()))
            if existing.scalar_one_or_none() is not None:
                raise CampusException("Admin email already registered", 400)

        school = School(
            code=await self.generate_code(data["name"]),
            features=dict(DEFAULT_FEATURES),
            settings={},
            **data,
        )
        self.db.add(school)
        await self.db.flush()

        admin = membership = None
        if admin_data:
            admin = User(
                email=admin_data["email"],
                phone=admin_data.get("phone"),
                password_hash=get_password_hash(admin_data["password"]),
                role=UserRole.SCHOOL_ADMIN.value,
                first_name=admin_data["first_name"],
                last_name=admin_data["last_name"],
            )
            self.db.add(admin)
            await self.db.flush()
            membership = SchoolUser(
                school_id=school.id,
                user_id=admin.id,
                role=UserRole.SCHOOL_ADMIN.value,
                permissions={"all": True},
                joined_at=utcnow(),
            )
            self.db.add(membership)

        AuditService(self.db).log("school_created", admin.id if admin else None,
                                  {"school_id": str(school.id), "code": school.code}, request)
        await self.db.commit()
        await self.db.refresh(school)
        logger.info(f"Created school {school.code}")
        return school, admin, membership

    async def list_schools(self, search: Optional[str], school_type: Optional[str], status: Optional[str],
                           page: int, limit: int) -> Tuple[List[School], int]:
        stmt = self.base_query()
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(or_(
                func.lower(School.name).like(pattern),
                func.lower(School.code).like(pattern),
                func.lower(School.email).like(pattern),
                func.lower(School.city).like(pattern),
            ))
        if school_type:
            stmt = stmt.where(School.school_type == school_type)
        if status:
            stmt = stmt.where(School.status == status)
        return await self.paginate(stmt.order_by(School.created_at.desc()), page, limit)

    async def public_search(self, q: str) -> List[School]:
        q = (q or "").strip()
        if len(q) < 2:
            raise ValidationException("Search query must be at least 2 characters", field="q")
        pattern = f"%{q.lower()}%"
        result = await self.db.execute(
            self.base_query()
            .where(
                School.status == SchoolStatus.ACTIVE.value,
                or_(func.lower(School.name).like(pattern), func.lower(School.code).like(pattern),
                    func.lower(School.city).like(pattern)),
            )
            .order_by(School.name)
            .limit(20)
        )
        return list(result.scalars().all())

    async def update_school(self, school: School, data: Dict[str, Any]) -> School:
        school = await self.update(school, data)
        await invalidate_school(school.id)
        return school

    async def set_subscription(self, school: School, plan: str, expires_at=None) -> School:
        school.subscription_plan = plan
        school.subscription_expires_at = expires_at
        await self.db.commit()
        await self.db.refresh(school)
        return school

    async def set_status(self, school: School, status: str) -> School:
        school.status = status
        await self.db.commit()
        await self.db.refresh(school)
        await invalidate_school(school.id)
        return school

    async def set_features(self, school: School, features: Dict[str, bool]) -> School:
        school.features = {**(school.features or {}), **features}
        await self.db.commit()
        await self.db.refresh(school)
        return school

    async def stats(self, school_id: UUID) -> Dict[str, int]:
        cached = await cache.get(school_stats_key(school_id))
        if cached is not None:
            return cached

        async def count(stmt) -> int:
            return (await self.db.execute(stmt)).scalar() or 0

        stats = {
            "students": await count(select(func.count()).select_from(Student).where(
                Student.school_id == school_id, Student.is_deleted == False,
                Student.status == StudentStatus.ACTIVE.value)),
            "teachers": await count(select(func.count()).select_from(Teacher).where(
                Teacher.school_id == school_id, Teacher.is_deleted == False)),
            "classes": await count(select(func.count()).select_from(SchoolClass).where(
                SchoolClass.school_id == school_id, SchoolClass.is_deleted == False)),
            "users": await count(select(func.count()).select_from(SchoolUser).where(
                SchoolUser.school_id == school_id, SchoolUser.is_active == True)),
        }
        await cache.set(school_stats_key(school_id), stats)
        return stats

    # academic terms

    async def create_term(self, school_id: UUID, data: Dict[str, Any]) -> AcademicTerm:
        if data.get("is_current"):
            await self.db.execute(
                update(AcademicTerm).where(AcademicTerm.school_id == school_id).values(is_current=False)
            )
        term = AcademicTerm(school_id=school_id, **data)
        self.db.add(term)
        await self.db.commit()
        await self.db.refresh(term)
        return term

    async def list_terms(self, school_id: UUID) -> List[AcademicTerm]:
        result = await self.db.execute(
            select(AcademicTerm)
            .where(AcademicTerm.school_id == school_id, AcademicTerm.is_deleted == False)
            .order_by(AcademicTerm.start_date.desc())
        )
        return list(result.scalars().all())


def format_school(school: School, detailed: bool = True) -> dict:
    data = {
        "id": str(school.id),
        "name": school.name,
        "code": school.code,
        "city": school.city,
        "type": school.school_type,
        "status": school.status,
    }
    if detailed:
        data.update({
            "email": school.email,
            "phone": school.phone,
            "address": school.address,
            "state": school.state,
            "country": school.country,
            "logo_url": school.logo_url,
            "website": school.website,
            "subscription_plan": school.subscription_plan,
            "subscription_expires_at": iso(school.subscription_expires_at),
            "features": school.features or {},
            "settings": school.settings or {},
            "created_at": iso(school.created_at),
        })
    return data


def format_term(term: AcademicTerm) -> dict:
    return {
        "id": str(term.id),
        "school_id": str(term.school_id),
        "name": term.name,
        "session": term.session,
        "start_date": iso(term.start_date),
        "end_date": iso(term.end_date),
        "is_current": term.is_current,
    }

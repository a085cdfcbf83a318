from datetime import timedelta
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .delivery_service import dispatch
from .notification_service import NotificationService
from ..core.auth import Principal, ensure_school_access
from ..core.config import settings
from ..core.exceptions import NotFoundError, PermissionDenied, ValidationException
from ..core.security import generate_code, utcnow, ensure_utc
from ..models.user import User, STAFF_ROLES, SCHOOL_MANAGER_ROLES
from ..models.tenant_specific.student import Student, ParentStudent, ParentLinkRequest, ParentLinkStatus
from ..models.tenant_specific.academics import SchoolClass

logger = logging.getLogger(__name__)


class ParentLinkService(BaseService[ParentLinkRequest]):
    resource_name = "Link request"

    def __init__(self, db: AsyncSession):
        super().__init__(ParentLinkRequest, db)

    async def _unique_code(self) -> str:
        while True:
            code = generate_code(8)
            existing = await self.db.execute(select(ParentLinkRequest.id).where(ParentLinkRequest.code == code))
            if existing.scalar_one_or_none() is None:
                return code

    async def create_request(self, principal: Principal, student_id: UUID, parent_email: Optional[str],
                             relationship_type: str) -> ParentLinkRequest:
        student = await self.db.get(Student, student_id)
        if student is None or student.is_deleted:
            raise NotFoundError("Student")
        await ensure_school_access(self.db, principal, student.school_id, roles=STAFF_ROLES)

        link = ParentLinkRequest(
            school_id=student.school_id,
            student_id=student.id,
            requested_by=principal.id,
            parent_email=parent_email.lower() if parent_email else None,
            relationship_type=relationship_type,
            code=await self._unique_code(),
            expires_at=utcnow() + timedelta(days=settings.parent_link_days),
        )
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)

        if link.parent_email:
            await dispatch(
                "email",
                link.parent_email,
                "Link your Campus parent account",
                f"Use code {link.code} to link your account to {student.full_name}. "
                f"The code expires in {settings.parent_link_days} days.",
            )
        return link

    async def claim(self, code: str, parent: User, commit: bool = True) -> ParentLinkRequest:
        if parent.role != "parent":
            raise PermissionDenied("Only parent accounts can claim link codes")
        result = await self.db.execute(
            self.base_query().where(ParentLinkRequest.code == code.upper())
        )
        link = result.scalar_one_or_none()
        if (
            link is None
            or link.status != ParentLinkStatus.PENDING.value
            or ensure_utc(link.expires_at) <= utcnow()
        ):
            raise ValidationException("Invalid or expired link code")
        if link.parent_email and parent.email and link.parent_email != parent.email.lower():
            raise PermissionDenied("This link code was issued to another email address")

        link.parent_id = parent.id
        link.status = ParentLinkStatus.CLAIMED.value
        link.claimed_at = utcnow()
        if commit:
            await self.db.commit()
            await self.db.refresh(link)
        return link

    async def review(self, link_id: UUID, principal: Principal, approve: bool) -> ParentLinkRequest:
        link = await self.get_or_404(link_id)
        await ensure_school_access(self.db, principal, link.school_id, roles=SCHOOL_MANAGER_ROLES)
        if link.status != ParentLinkStatus.CLAIMED.value:
            raise ValidationException("Only claimed link requests can be reviewed")

        link.reviewed_by = principal.id
        link.reviewed_at = utcnow()
        if approve:
            link.status = ParentLinkStatus.APPROVED.value
            existing = await self.db.execute(
                select(ParentStudent).where(
                    ParentStudent.parent_id == link.parent_id,
                    ParentStudent.student_id == link.student_id,
                )
            )
            if existing.scalar_one_or_none() is None:
                self.db.add(ParentStudent(
                    parent_id=link.parent_id,
                    student_id=link.student_id,
                    relationship_type=link.relationship_type,
                ))
            NotificationService(self.db).notify(
                link.parent_id, "Child linked", "Your link request was approved.", "parent_link",
                {"student_id": str(link.student_id)},
            )
        else:
            link.status = ParentLinkStatus.REJECTED.value
        await self.db.commit()
        await self.db.refresh(link)
        logger.info(f"Parent link {link.id} {link.status} by {principal.id}")
        return link

    async def children_of(self, parent_id: UUID) -> List[tuple]:
        result = await self.db.execute(
            select(Student, ParentStudent.relationship_type, SchoolClass.name)
            .join(ParentStudent, ParentStudent.student_id == Student.id)
            .outerjoin(SchoolClass, SchoolClass.id == Student.class_id)
            .where(ParentStudent.parent_id == parent_id, ParentStudent.is_deleted == False,
                   Student.is_deleted == False)
            .order_by(Student.first_name)
        )
        return list(result.all())

    async def is_parent_of(self, parent_id: UUID, student_id: UUID) -> bool:
        result = await self.db.execute(
            select(ParentStudent.id).where(
                ParentStudent.parent_id == parent_id,
                ParentStudent.student_id == student_id,
                ParentStudent.is_deleted == False,
            )
        )
        return result.first() is not None

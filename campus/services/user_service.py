from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.auth import Principal
from ..core.exceptions import CampusException, NotFoundError, PermissionDenied
from ..core.security import get_password_hash, utcnow
from ..models.user import User, SchoolUser
from ..utils.formatting import format_user, iso

logger = logging.getLogger(__name__)


class UserService(BaseService[User]):
    resource_name = "User"

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def list_members(self, school_id: UUID, role: Optional[str], page: int, limit: int
                           ) -> Tuple[List[Tuple[User, SchoolUser]], int]:
        stmt = (
            select(SchoolUser)
            .where(SchoolUser.school_id == school_id, SchoolUser.is_deleted == False)
            .order_by(SchoolUser.created_at)
        )
        if role:
            stmt = stmt.where(SchoolUser.role == role)
        memberships, total = await self.paginate(stmt, page, limit)
        users = {}
        if memberships:
            result = await self.db.execute(select(User).where(User.id.in_([m.user_id for m in memberships])))
            users = {u.id: u for u in result.scalars().all()}
        return [(users[m.user_id], m) for m in memberships if m.user_id in users], total

    async def update_user(self, principal: Principal, user: User, data: Dict[str, Any]) -> User:
        if "role" in data and data["role"] is not None and not principal.is_super_admin:
            raise PermissionDenied("Only super admins can change roles")
        if "is_active" in data and not principal.is_admin:
            data.pop("is_active")
        if data.get("phone") and data["phone"] != user.phone:
            existing = await self.db.execute(select(User.id).where(User.phone == data["phone"], User.id != user.id))
            if existing.scalar_one_or_none() is not None:
                raise CampusException("Phone number already registered", 400)
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        return await self.update(user, data)

    async def add_member(self, school_id: UUID, data: Dict[str, Any]) -> Tuple[User, SchoolUser, bool]:
        """Attach an existing user by email, or create one, to the school."""
        role = data["role"].value if hasattr(data["role"], "value") else data["role"]
        result = await self.db.execute(select(User).where(User.email == data["email"].lower()))
        user = result.scalar_one_or_none()
        created = False
        if user is None:
            if not data.get("first_name") or not data.get("last_name") or not data.get("password"):
                raise CampusException("first_name, last_name and password are required for new users", 400)
            user = User(
                email=data["email"].lower(),
                phone=data.get("phone"),
                password_hash=get_password_hash(data["password"]),
                role=role,
                first_name=data["first_name"],
                last_name=data["last_name"],
            )
            self.db.add(user)
            await self.db.flush()
            created = True

        result = await self.db.execute(
            select(SchoolUser).where(SchoolUser.school_id == school_id, SchoolUser.user_id == user.id)
        )
        membership = result.scalar_one_or_none()
        if membership is not None and membership.is_active and not membership.is_deleted:
            raise CampusException("User is already a member of this school", 400)
        if membership is None:
            membership = SchoolUser(school_id=school_id, user_id=user.id, role=role, joined_at=utcnow())
            self.db.add(membership)
        else:
            membership.role = role
            membership.is_active = True
            membership.is_deleted = False
        await self.db.commit()
        await self.db.refresh(membership)
        logger.info(f"Added {user.email} to school {school_id} as {role}")
        return user, membership, created

    async def _membership_or_404(self, school_id: UUID, user_id: UUID) -> SchoolUser:
        result = await self.db.execute(
            select(SchoolUser).where(SchoolUser.school_id == school_id, SchoolUser.user_id == user_id)
        )
        membership = result.scalar_one_or_none()
        if membership is None:
            raise NotFoundError("School membership")
        return membership

    async def remove_member(self, school_id: UUID, user_id: UUID) -> SchoolUser:
        membership = await self._membership_or_404(school_id, user_id)
        membership.is_active = False
        await self.db.commit()
        return membership

    async def change_member_role(self, school_id: UUID, user_id: UUID, role: str) -> SchoolUser:
        membership = await self._membership_or_404(school_id, user_id)
        membership.role = role
        await self.db.commit()
        await self.db.refresh(membership)
        return membership


def format_member(user: User, membership: SchoolUser) -> dict:
    data = format_user(user)
    data.update({
        "school_id": str(membership.school_id),
        "school_role": membership.role,
        "membership_active": membership.is_active,
        "joined_at": iso(membership.joined_at),
    })
    return data

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..core.exceptions import PermissionDenied
from ..models.user import SCHOOL_MANAGER_ROLES
from ..schemas.people import MemberRoleUpdate, SchoolMemberAdd, UserUpdate
from ..services.school_service import SchoolService
from ..services.user_service import UserService, format_member
from ..utils.formatting import format_user
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/users", tags=["Users"])


async def _manage_school(db: AsyncSession, principal: Principal, school_id: UUID):
    await SchoolService(db).get_or_404(school_id)
    await ensure_school_access(db, principal, school_id, roles=SCHOOL_MANAGER_ROLES)


@router.get("/school/{school_id}")
async def list_school_users(
    school_id: UUID,
    role: Optional[str] = Query(None),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _manage_school(db, principal, school_id)
    rows, total = await UserService(db).list_members(school_id, role, pagination.page, pagination.limit)
    return Paginator.create_response([format_member(u, m) for u, m in rows], pagination.page, pagination.limit, total)


@router.get("/{user_id}")
async def get_user(user_id: UUID, principal: Principal = Depends(get_current_user),
                   db: AsyncSession = Depends(get_db)):
    if principal.id != user_id and not principal.is_admin:
        raise PermissionDenied("You can only view your own account")
    user = await UserService(db).get_or_404(user_id)
    return format_user(user)


@router.put("/{user_id}")
async def update_user(user_id: UUID, payload: UserUpdate, principal: Principal = Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    if principal.id != user_id and not principal.is_admin:
        raise PermissionDenied("You can only update your own account")
    service = UserService(db)
    user = await service.get_or_404(user_id)
    user = await service.update_user(principal, user, payload.changes())
    return {"message": "User updated successfully", "user": format_user(user)}


@router.post("/school/{school_id}/add", status_code=status.HTTP_201_CREATED)
async def add_school_user(school_id: UUID, payload: SchoolMemberAdd, principal: Principal = Depends(get_current_user),
                          db: AsyncSession = Depends(get_db)):
    await _manage_school(db, principal, school_id)
    user, membership, created = await UserService(db).add_member(school_id, payload.model_dump())
    return {
        "message": "User created and added to school" if created else "User added to school",
        "user": format_member(user, membership),
    }


@router.delete("/school/{school_id}/remove/{user_id}")
async def remove_school_user(school_id: UUID, user_id: UUID, principal: Principal = Depends(get_current_user),
                             db: AsyncSession = Depends(get_db)):
    await _manage_school(db, principal, school_id)
    if user_id == principal.id:
        raise PermissionDenied("You cannot remove yourself from the school")
    await UserService(db).remove_member(school_id, user_id)
    return {"message": "User removed from school"}


@router.put("/school/{school_id}/role/{user_id}")
async def change_school_role(school_id: UUID, user_id: UUID, payload: MemberRoleUpdate,
                             principal: Principal = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    await _manage_school(db, principal, school_id)
    membership = await UserService(db).change_member_role(school_id, user_id, payload.role.value)
    return {"message": "Role updated successfully", "school_role": membership.role}

# campus/core/auth.py
"""Bearer token authentication and role guards."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional
from uuid import UUID
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .exceptions import AuthenticationError, PermissionDenied
from .security import decode_token, ensure_utc, utcnow
from ..models.user import User, SchoolUser, ADMIN_ROLES
from ..models.shared.auth_tokens import RevokedToken, GuestSession

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

SAFE_METHODS = {"GET", "HEAD", "OPTIONS"}
GUEST_WRITABLE_PATHS = {"/api/auth/logout", "/api/auth/refresh"}


@dataclass
class Principal:
    """The caller resolved from a bearer token."""
    id: UUID
    role: str
    claims: Dict[str, Any]
    user: Optional[User] = None
    school_id: Optional[UUID] = None
    school_role: Optional[str] = None
    is_guest: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def jti(self) -> Optional[str]:
        return self.claims.get("jti")

    @property
    def issued_at(self) -> Optional[datetime]:
        iat = self.claims.get("iat")
        return datetime.fromtimestamp(iat, tz=timezone.utc) if iat else None

    @property
    def expires_at(self) -> Optional[datetime]:
        exp = self.claims.get("exp")
        return datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def has_role(self, roles: Iterable[str]) -> bool:
        roles = set(roles)
        return self.role in roles or (self.school_role is not None and self.school_role in roles)


def _parse_uuid(value: Any) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    payload = decode_token(credentials.credentials)
    if payload.get("type") not in ("access", "guest"):
        raise AuthenticationError("Invalid token")

    revoked = await db.execute(select(RevokedToken.id).where(RevokedToken.jti == payload.get("jti")))
    if revoked.scalar_one_or_none() is not None:
        raise AuthenticationError("Token revoked")

    subject = _parse_uuid(payload.get("sub"))
    if subject is None:
        raise AuthenticationError("Invalid token")

    if payload["type"] == "guest":
        session = await db.get(GuestSession, subject)
        if session is None or ensure_utc(session.expires_at) <= utcnow():
            raise AuthenticationError("Token expired")
        principal = Principal(
            id=subject,
            role="guest",
            claims=payload,
            school_id=_parse_uuid(payload.get("school_id")),
            is_guest=True,
        )
        if request.method not in SAFE_METHODS and request.url.path not in GUEST_WRITABLE_PATHS:
            raise PermissionDenied("Guest sessions are read-only")
        return principal

    user = await db.get(User, subject)
    if user is None or not user.is_active or user.is_deleted:
        raise AuthenticationError("User not found or inactive")

    return Principal(
        id=user.id,
        role=user.role,
        claims=payload,
        user=user,
        school_id=_parse_uuid(payload.get("school_id")),
        school_role=payload.get("school_role"),
    )


async def get_current_user(principal: Principal = Depends(get_current_principal)) -> Principal:
    """Principal that must be a registered user rather than a guest."""
    if principal.is_guest:
        raise PermissionDenied("Insufficient permissions", required=["registered user"], current="guest")
    return principal


def require_roles(*roles: str):
    """Dependency factory checking the global role or the active school role."""
    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_role(roles):
            raise PermissionDenied(
                "Insufficient permissions",
                required=list(roles),
                current=principal.role,
            )
        return principal
    return checker


require_admin = require_roles(*sorted(ADMIN_ROLES))


async def get_membership(db: AsyncSession, user_id: UUID, school_id: UUID) -> Optional[SchoolUser]:
    result = await db.execute(
        select(SchoolUser).where(
            SchoolUser.user_id == user_id,
            SchoolUser.school_id == school_id,
            SchoolUser.is_active == True,
            SchoolUser.is_deleted == False,
        )
    )
    return result.scalar_one_or_none()


async def ensure_school_access(
    db: AsyncSession,
    principal: Principal,
    school_id: UUID,
    roles: Optional[Iterable[str]] = None,
) -> Optional[SchoolUser]:
    """Raise unless the principal may act inside ``school_id``.

    Super admins pass everywhere, guests only inside the school their session
    was opened for and never where ``roles`` is given. Otherwise the
    membership role must match ``roles``.
    """
    if principal.is_super_admin:
        return None
    if principal.is_guest:
        if principal.school_id != school_id:
            raise PermissionDenied("No access to this school")
        if roles is not None:
            raise PermissionDenied("Insufficient permissions", required=list(roles), current="guest")
        return None
    membership = await get_membership(db, principal.id, school_id)
    if membership is None:
        raise PermissionDenied("No access to this school")
    if roles is not None and membership.role not in set(roles):
        raise PermissionDenied(
            "Insufficient permissions",
            required=list(roles),
            current=membership.role,
        )
    return membership

# campus/services/auth_service.py
"""Credential checks, token issuing and the one-time code flows."""
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID
import logging
import re

from fastapi import Request
from sqlalchemy import select, update, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from .audit_service import AuditService, client_ip
from .delivery_service import dispatch
from .parent_link_service import ParentLinkService
from ..core.auth import Principal
from ..core.config import settings
from ..core.exceptions import (
    AuthenticationError, CampusException, NotFoundError, PermissionDenied, ValidationException,
)
from ..core.security import (
    create_access_token, ensure_utc, generate_otp, generate_token, get_password_hash,
    hash_secret, utcnow, verify_password,
)
from ..models.shared.auth_tokens import (
    GuestSession, MagicLink, OtpCode, OtpPurpose, PasswordResetToken, RevokedToken,
)
from ..models.shared.school import School, SchoolStatus
from ..models.user import User, SchoolUser, ADMIN_ROLES
from ..utils.formatting import format_user, iso
from ..utils.navigation import GUEST_BANNER, LOGIN_PATH, dashboard_for, guest_limitations

logger = logging.getLogger(__name__)

INVALID_OTP = "Invalid or expired OTP"


def normalize_identifier(identifier: str) -> Tuple[str, str]:
    """Split a login identifier into ('email'|'phone', normalized value)."""
    identifier = identifier.strip()
    if "@" in identifier:
        return "email", identifier.lower()
    return "phone", re.sub(r"\s+", "", identifier)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    # lookups

    async def find_user(self, identifier: str) -> Optional[User]:
        kind, value = normalize_identifier(identifier)
        column = User.email if kind == "email" else User.phone
        result = await self.db.execute(
            select(User).where(column == value, User.is_deleted == False)
        )
        return result.scalar_one_or_none()

    async def school_by_code(self, code: str) -> School:
        result = await self.db.execute(
            select(School).where(School.code == code.upper(), School.is_deleted == False)
        )
        school = result.scalar_one_or_none()
        if school is None:
            raise NotFoundError("School")
        return school

    async def membership_for(
        self, user: User, school_id: Optional[UUID] = None
    ) -> Tuple[Optional[SchoolUser], Optional[School]]:
        stmt = (
            select(SchoolUser, School)
            .join(School, School.id == SchoolUser.school_id)
            .where(
                SchoolUser.user_id == user.id,
                SchoolUser.is_active == True,
                SchoolUser.is_deleted == False,
                School.is_deleted == False,
            )
            .order_by(SchoolUser.created_at)
        )
        if school_id is not None:
            stmt = stmt.where(SchoolUser.school_id == school_id)
        row = (await self.db.execute(stmt)).first()
        return (row[0], row[1]) if row else (None, None)

    # tokens

    def issue_token(self, user: User, membership: Optional[SchoolUser] = None) -> str:
        claims: Dict[str, Any] = {"role": user.role, "type": "access"}
        if membership is not None:
            claims["school_id"] = str(membership.school_id)
            claims["school_role"] = membership.role
        return create_access_token(user.id, claims)

    def login_payload(self, user: User, membership: Optional[SchoolUser], school: Optional[School],
                      message: str = "Login successful") -> Dict[str, Any]:
        return {
            "message": message,
            "user": format_user(user, membership, school),
            "token": self.issue_token(user, membership),
            "redirect_to": dashboard_for(membership.role if membership is not None else user.role),
        }

    async def _complete_login(self, user: User, request: Optional[Request], channel: str,
                              school_id: Optional[UUID] = None, message: str = "Login successful"):
        membership, school = await self.membership_for(user, school_id)
        user.last_login_at = utcnow()
        self.audit.login_event(user.id, True, request, school_id=membership.school_id if membership else None,
                               role=user.role, channel=channel)
        await self.db.commit()
        await self.db.refresh(user)
        return self.login_payload(user, membership, school, message)

    async def _fail_login(self, user: Optional[User], request: Optional[Request],
                          school_id: Optional[UUID] = None, channel: str = "password"):
        self.audit.login_event(user.id if user else None, False, request, school_id=school_id, channel=channel)
        await self.db.commit()
        raise AuthenticationError("Invalid credentials")

    # registration and password login

    async def register(self, data: Dict[str, Any], request: Optional[Request] = None) -> Dict[str, Any]:
        existing = await self.db.execute(select(User.id).where(User.email == data["email"]))
        if existing.scalar_one_or_none() is not None:
            raise CampusException("User already exists with this email", 400)
        if data.get("phone"):
            existing = await self.db.execute(select(User.id).where(User.phone == data["phone"]))
            if existing.scalar_one_or_none() is not None:
                raise CampusException("Phone number already registered", 400)

        school = await self.school_by_code(data["school_code"]) if data.get("school_code") else None

        user = User(
            email=data["email"],
            phone=data.get("phone"),
            password_hash=get_password_hash(data["password"]),
            role=data["role"],
            first_name=data["first_name"],
            last_name=data["last_name"],
        )
        self.db.add(user)
        await self.db.flush()

        membership = None
        if school is not None:
            membership = SchoolUser(school_id=school.id, user_id=user.id, role=user.role, joined_at=utcnow())
            self.db.add(membership)

        if data.get("child_code"):
            await ParentLinkService(self.db).claim(data["child_code"], user, commit=False)

        self.audit.log("user_registered", user.id, {"role": user.role}, request)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Registered {user.role} {user.email}")
        return self.login_payload(user, membership, school, "User registered successfully")

    async def login(self, identifier: str, password: str, school_code: Optional[str] = None,
                    request: Optional[Request] = None) -> Dict[str, Any]:
        user = await self.find_user(identifier)
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            await self._fail_login(user, request)

        school_id = None
        if school_code:
            school = await self.school_by_code(school_code)
            membership, _ = await self.membership_for(user, school.id)
            if membership is None:
                await self._fail_login(user, request, school.id)
            school_id = school.id
        return await self._complete_login(user, request, "password", school_id)

    async def school_login(self, identifier: str, role: str, email: str, password: str,
                           request: Optional[Request] = None) -> Dict[str, Any]:
        needle = identifier.strip()
        result = await self.db.execute(
            select(School).where(
                School.is_deleted == False,
                or_(
                    School.code == needle.upper(),
                    School.email == needle.lower(),
                    func.lower(School.name) == needle.lower(),
                ),
            )
        )
        school = result.scalars().first()
        if school is None:
            raise NotFoundError("School")

        user = await self.find_user(email)
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            await self._fail_login(user, request, school.id)
        membership, _ = await self.membership_for(user, school.id)
        if membership is None or membership.role != role:
            await self._fail_login(user, request, school.id)
        if school.status != SchoolStatus.ACTIVE.value:
            raise PermissionDenied("School account is not active")
        return await self._complete_login(user, request, "school", school.id)

    # one-time codes

    async def request_otp(self, identifier: str, purpose: OtpPurpose) -> Dict[str, Any]:
        user = await self.find_user(identifier)
        if user is None or not user.is_active:
            raise NotFoundError("User")
        channel = "email" if normalize_identifier(identifier)[0] == "email" else "sms"
        now = utcnow()

        await self.db.execute(
            update(OtpCode)
            .where(OtpCode.user_id == user.id, OtpCode.purpose == purpose.value, OtpCode.consumed_at.is_(None))
            .values(consumed_at=now)
        )
        code = generate_otp()
        self.db.add(OtpCode(
            user_id=user.id,
            code_hash=hash_secret(code),
            purpose=purpose.value,
            channel=channel,
            expires_at=now + timedelta(minutes=settings.otp_expire_minutes),
        ))
        await self.db.commit()

        destination = user.email if channel == "email" else user.phone
        await dispatch(
            channel,
            destination,
            "Your Campus verification code",
            f"Your verification code is {code}. It expires in {settings.otp_expire_minutes} minutes.",
        )
        response = {
            "message": "OTP sent successfully",
            "channel": channel,
            "expires_in": settings.otp_expire_minutes * 60,
        }
        if settings.expose_dev_secrets:
            response["otp"] = code
        return response

    async def verify_otp(self, identifier: str, otp: str, purpose: OtpPurpose,
                         request: Optional[Request] = None) -> Dict[str, Any]:
        user = await self.find_user(identifier)
        if user is None or not user.is_active:
            raise ValidationException(INVALID_OTP)
        now = utcnow()
        result = await self.db.execute(
            select(OtpCode)
            .where(
                OtpCode.user_id == user.id,
                OtpCode.purpose == purpose.value,
                OtpCode.code_hash == hash_secret(otp),
                OtpCode.consumed_at.is_(None),
                OtpCode.expires_at > now,
            )
            .order_by(OtpCode.created_at.desc())
        )
        record = result.scalars().first()
        if record is None:
            raise ValidationException(INVALID_OTP)
        record.consumed_at = now

        if purpose == OtpPurpose.LOGIN:
            return await self._complete_login(user, request, "otp")
        if purpose == OtpPurpose.VERIFY:
            if record.channel == "email":
                user.email_verified = True
            else:
                user.phone_verified = True
            await self.db.commit()
            return {"message": "Account verified successfully", "verified": True}

        token = self._stage_reset_token(user)
        await self.db.commit()
        return {"message": "OTP verified", "reset_token": token}

    # guests

    async def guest_login(self, school_code: Optional[str] = None, school_id: Optional[str] = None,
                          request: Optional[Request] = None,
                          hours: Optional[int] = None) -> Dict[str, Any]:
        school = None
        if school_code:
            school = await self.school_by_code(school_code)
        elif school_id:
            try:
                school = await self.db.get(School, UUID(school_id))
            except ValueError:
                school = None
            if school is None or school.is_deleted:
                raise NotFoundError("School")

        hours = hours or settings.guest_session_hours
        session = GuestSession(
            school_id=school.id if school else None,
            ip_address=client_ip(request),
            expires_at=utcnow() + timedelta(hours=hours),
        )
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)

        claims = {"type": "guest", "role": "guest"}
        if school is not None:
            claims["school_id"] = str(school.id)
        token = create_access_token(session.id, claims, expires_delta=timedelta(hours=hours))
        return {
            "message": "Guest login successful",
            "token": token,
            "user": {
                "id": str(session.id),
                "role": "guest",
                "first_name": "Guest",
                "last_name": "User",
                "is_guest": True,
                "school_id": str(school.id) if school else None,
                "school_name": school.name if school else None,
                "school_code": school.code if school else None,
            },
            "limitations": guest_limitations(hours),
            "banner": GUEST_BANNER,
            "expires_at": iso(session.expires_at),
            "redirect_to": dashboard_for("guest"),
        }

    # administrators

    async def admin_login(self, email: str, password: str, admin_key: Optional[str],
                          request: Optional[Request] = None) -> Dict[str, Any]:
        if (settings.admin_access_key or admin_key) and admin_key != settings.admin_access_key:
            raise PermissionDenied("Invalid admin access key")
        user = await self.find_user(email)
        if (
            user is None
            or user.role not in ADMIN_ROLES
            or not user.is_active
            or not verify_password(password, user.password_hash)
        ):
            self.audit.login_event(user.id if user else None, False, request, channel="admin")
            await self.db.commit()
            raise AuthenticationError("Invalid admin credentials")
        self.audit.log("admin_login", user.id, {"role": user.role}, request)
        payload = await self._complete_login(user, request, "admin", message="Admin login successful")
        payload["admin_access"] = True
        return payload

    async def create_magic_link(self, creator: Principal, email: str, admin_role: str,
                                first_name: str = "Admin", last_name: str = "User",
                                request: Optional[Request] = None) -> Dict[str, Any]:
        user = await self.find_user(email)
        if user is None:
            user = User(email=email.lower(), role=admin_role, first_name=first_name, last_name=last_name)
            self.db.add(user)
            await self.db.flush()
        elif user.role not in ADMIN_ROLES:
            raise ValidationException("Email belongs to a non-admin account", field="email")

        token = generate_token()
        expires_at = utcnow() + timedelta(minutes=settings.magic_link_minutes)
        self.db.add(MagicLink(
            user_id=user.id,
            created_by=creator.id,
            token_hash=hash_secret(token),
            expires_at=expires_at,
        ))
        self.audit.log("magic_link_created", creator.id, {"email": user.email, "role": user.role}, request)
        await self.db.commit()

        link = f"{settings.frontend_url.rstrip('/')}/admin/magic-login?token={token}"
        await dispatch(
            "email",
            user.email,
            "Your Campus admin sign-in link",
            f"Sign in with this link within {settings.magic_link_minutes} minutes: {link}",
        )
        response = {"message": "Magic link sent", "email": user.email, "expires_at": iso(expires_at)}
        if settings.expose_dev_secrets:
            response["link"] = link
            response["token"] = token
        return response

    async def magic_login(self, token: str, request: Optional[Request] = None) -> Dict[str, Any]:
        now = utcnow()
        result = await self.db.execute(
            select(MagicLink).where(
                MagicLink.token_hash == hash_secret(token),
                MagicLink.used_at.is_(None),
                MagicLink.expires_at > now,
            )
        )
        link = result.scalar_one_or_none()
        if link is None:
            raise ValidationException("Invalid or expired magic link")
        user = await self.db.get(User, link.user_id)
        if user is None or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        link.used_at = now
        user.email_verified = True
        self.audit.log("magic_link_login", user.id, {"role": user.role}, request)
        payload = await self._complete_login(user, request, "magic_link", message="Admin login successful")
        payload["admin_access"] = user.role in ADMIN_ROLES
        return payload

    # sessions

    async def refresh(self, principal: Principal) -> Dict[str, Any]:
        if principal.is_guest:
            session = await self.db.get(GuestSession, principal.id)
            remaining = ensure_utc(session.expires_at) - utcnow()
            claims = {"type": "guest", "role": "guest"}
            if session.school_id:
                claims["school_id"] = str(session.school_id)
            token = create_access_token(session.id, claims, expires_delta=remaining)
            return {"message": "Token refreshed", "token": token, "expires_at": iso(session.expires_at)}

        membership = None
        if principal.school_id is not None:
            membership, _ = await self.membership_for(principal.user, principal.school_id)
        if membership is None:
            membership, _ = await self.membership_for(principal.user)
        token = self.issue_token(principal.user, membership)
        return {"message": "Token refreshed", "token": token}

    async def logout(self, principal: Principal, request: Optional[Request] = None) -> Dict[str, Any]:
        if principal.jti:
            self.db.add(RevokedToken(jti=principal.jti, expires_at=principal.expires_at or utcnow()))
        self.audit.log(
            "logout",
            None if principal.is_guest else principal.id,
            {"role": principal.role},
            request,
        )
        await self.db.commit()
        return {"message": "Logged out successfully", "redirect_to": LOGIN_PATH}

    def session_info(self, principal: Principal) -> Dict[str, Any]:
        expires_at = principal.expires_at
        remaining = int((expires_at - utcnow()).total_seconds()) if expires_at else 0
        return {
            "role": principal.role,
            "is_guest": principal.is_guest,
            "read_only": principal.is_guest,
            "school_id": str(principal.school_id) if principal.school_id else None,
            "issued_at": iso(principal.issued_at),
            "expires_at": iso(expires_at),
            "seconds_remaining": max(0, remaining),
            "banner": GUEST_BANNER if principal.is_guest else None,
            "dashboard": dashboard_for(principal.role),
        }

    async def profile(self, principal: Principal) -> Dict[str, Any]:
        if principal.is_guest:
            return {"user": {"id": str(principal.id), "role": "guest", "first_name": "Guest",
                             "last_name": "User", "is_guest": True}, "schools": []}
        result = await self.db.execute(
            select(SchoolUser, School)
            .join(School, School.id == SchoolUser.school_id)
            .where(SchoolUser.user_id == principal.id, SchoolUser.is_active == True)
        )
        schools = [
            {"school_id": str(school.id), "name": school.name, "code": school.code, "role": membership.role}
            for membership, school in result.all()
        ]
        membership, school = await self.membership_for(principal.user, principal.school_id)
        return {"user": format_user(principal.user, membership, school), "schools": schools}

    # password reset

    def _stage_reset_token(self, user: User) -> str:
        token = generate_token()
        self.db.add(PasswordResetToken(
            user_id=user.id,
            token_hash=hash_secret(token),
            expires_at=utcnow() + timedelta(minutes=settings.reset_token_expire_minutes),
        ))
        return token

    async def request_password_reset(self, identifier: str) -> Dict[str, Any]:
        response: Dict[str, Any] = {"message": "If an account exists, password reset instructions have been sent"}
        user = await self.find_user(identifier)
        if user is None or not user.is_active:
            return response

        token = self._stage_reset_token(user)
        await self.db.commit()
        kind, _ = normalize_identifier(identifier)
        if kind == "email":
            link = f"{settings.frontend_url.rstrip('/')}/auth/reset-password?token={token}"
            await dispatch("email", user.email, "Reset your Campus password",
                           f"Reset your password within {settings.reset_token_expire_minutes} minutes: {link}")
        else:
            await dispatch("sms", user.phone, "Reset your Campus password",
                           f"Your Campus password reset token is {token}")
        if settings.expose_dev_secrets:
            response["reset_token"] = token
        return response

    async def reset_password(self, token: str, new_password: str,
                             request: Optional[Request] = None) -> Dict[str, Any]:
        now = utcnow()
        result = await self.db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.token_hash == hash_secret(token),
                PasswordResetToken.used_at.is_(None),
                PasswordResetToken.expires_at > now,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise ValidationException("Invalid or expired reset token")
        user = await self.db.get(User, record.user_id)
        if user is None:
            raise ValidationException("Invalid or expired reset token")
        user.password_hash = get_password_hash(new_password)
        record.used_at = now
        self.audit.log("password_reset", user.id, None, request)
        await self.db.commit()
        return {"message": "Password reset successfully"}

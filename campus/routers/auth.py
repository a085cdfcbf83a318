from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, get_current_principal, require_roles
from ..core.database import get_db
from ..core.rate_limiter import auth_rate_limit
from ..schemas.auth import (
    AdminLoginRequest, ForgotPasswordRequest, GuestLoginRequest, LoginRequest, MagicLinkRequest,
    MagicLoginRequest, OtpRequest, OtpVerifyRequest, RegisterRequest, ResetPasswordRequest, ResetRequest,
)
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_rate_limit)])
async def register(payload: RegisterRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Create an account for a student, parent, teacher or school admin."""
    return await AuthService(db).register(payload.model_dump(), request)


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(payload: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).login(payload.email_or_phone, payload.password, payload.school_code, request)


@router.post("/request-otp", dependencies=[Depends(auth_rate_limit)])
async def request_otp(payload: OtpRequest, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).request_otp(payload.email_or_phone, payload.purpose)


@router.post("/verify-otp", dependencies=[Depends(auth_rate_limit)])
async def verify_otp(payload: OtpVerifyRequest, request: Request, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).verify_otp(payload.email_or_phone, payload.otp, payload.purpose, request)


@router.post("/guest-login")
async def guest_login(request: Request, payload: Optional[GuestLoginRequest] = None,
                      db: AsyncSession = Depends(get_db)):
    payload = payload or GuestLoginRequest()
    return await AuthService(db).guest_login(payload.school_code, payload.school_id, request)


@router.post("/admin-login", dependencies=[Depends(auth_rate_limit)])
async def admin_login(payload: AdminLoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).admin_login(payload.email, payload.password, payload.admin_key, request)


@router.post("/magic-link", status_code=status.HTTP_201_CREATED)
async def create_magic_link(
    payload: MagicLinkRequest,
    request: Request,
    principal: Principal = Depends(require_roles("super_admin")),
    db: AsyncSession = Depends(get_db),
):
    """Issue a single-use sign-in link for an administrator."""
    return await AuthService(db).create_magic_link(
        principal, payload.email, payload.admin_role, payload.first_name, payload.last_name, request
    )


@router.post("/magic-login", dependencies=[Depends(auth_rate_limit)])
async def magic_login(payload: MagicLoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).magic_login(payload.token, request)


@router.post("/refresh")
async def refresh_token(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db)):
    return await AuthService(db).refresh(principal)


@router.post("/logout")
async def logout(request: Request, principal: Principal = Depends(get_current_principal),
                 db: AsyncSession = Depends(get_db)):
    return await AuthService(db).logout(principal, request)


@router.post("/forgot-password", dependencies=[Depends(auth_rate_limit)])
async def forgot_password(payload: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).request_password_reset(payload.email)


@router.post("/request-reset", dependencies=[Depends(auth_rate_limit)])
async def request_reset(payload: ResetRequest, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).request_password_reset(payload.email_or_phone)


@router.post("/reset-password", dependencies=[Depends(auth_rate_limit)])
async def reset_password(payload: ResetPasswordRequest, request: Request, db: AsyncSession = Depends(get_db)):
    return await AuthService(db).reset_password(payload.token, payload.new_password, request)


@router.get("/profile")
async def profile(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db)):
    return await AuthService(db).profile(principal)


@router.get("/session")
async def session_info(principal: Principal = Depends(get_current_principal), db: AsyncSession = Depends(get_db)):
    """Token-derived session details: read-only flag, banner and expiry countdown."""
    return AuthService(db).session_info(principal)

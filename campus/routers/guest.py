from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..schemas.auth import GuestLoginRequest
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/guest", tags=["Guest"])

GUEST_DEMO_HOURS = 7 * 24


@router.post("/login")
async def guest_login(request: Request, payload: Optional[GuestLoginRequest] = None,
                      db: AsyncSession = Depends(get_db)):
    """Week-long read-only demo session, optionally scoped to one school."""
    payload = payload or GuestLoginRequest()
    return await AuthService(db).guest_login(payload.school_code, payload.school_id, request,
                                             hours=GUEST_DEMO_HOURS)

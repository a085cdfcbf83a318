from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.rate_limiter import auth_rate_limit
from ..schemas.auth import SchoolLoginRequest
from ..services.auth_service import AuthService

router = APIRouter(prefix="/api/school", tags=["School Login"])


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def school_login(payload: SchoolLoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Staff login through a school's code, email or name."""
    return await AuthService(db).school_login(
        payload.school_identifier, payload.role, payload.email, payload.password, request
    )

"""Health check endpoints."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import cache
from ..core.config import settings
from ..core.database import get_db, health_check_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
async def readiness(session: AsyncSession = Depends(get_db)):
    """Readiness probe: database round-trip plus cache status."""
    database_ok = await health_check_db(session)
    body = {
        "status": "ready" if database_ok else "unavailable",
        "database": "healthy" if database_ok else "unhealthy",
        "cache": "enabled" if cache.enabled else "disabled",
    }
    if not database_ok:
        logger.warning("Readiness check failed: database unreachable")
        return JSONResponse(status_code=503, content=body)
    return body

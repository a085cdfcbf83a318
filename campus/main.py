from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from . import __version__
from .core.config import settings
from .core.cache import cache
from .core.database import close_db_connections
from .core.error_handlers import register_exception_handlers
from .core.logging import setup_logging

from .routers import (
    health, auth, guest, school_login, schools, terms, users, students, teachers,
    classes, subjects, attendance, grades, fees, timetables, announcements, events,
    messages, notifications, reports, dashboard, admin, parent_links, navigation,
)

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} API ({settings.environment})")
    if cache.enabled:
        await cache.connect()
        logger.info("Cache initialized")

    yield

    logger.info(f"Shutting down {settings.app_name} API")
    await cache.disconnect()
    await close_db_connections()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Campus API - Multi-tenant School Management",
    description="School management backend with role-based access, guest demo sessions and parent portals",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

for module in (
    health, auth, guest, school_login, schools, terms, users, students, teachers,
    classes, subjects, attendance, grades, fees, timetables, announcements, events,
    messages, notifications, reports, dashboard, admin, parent_links, navigation,
):
    app.include_router(module.router)


@app.get("/")
async def root():
    return {
        "message": f"Campus API v{__version__}",
        "version": __version__,
        "features": ["Multi-tenant", "Role-based access", "Guest demo sessions", "Parent portal",
                     "Redis Caching", "Async Operations"],
        "status": "active",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("campus.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

from typing import Any, Dict, Optional
from uuid import UUID
import logging

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.shared.audit import SystemLog, LoginEvent

logger = logging.getLogger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None or request.client is None:
        return None
    return request.client.host


class AuditService:
    """Writes system log and login event rows inside the caller's transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def log(
        self,
        action: str,
        user_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> SystemLog:
        entry = SystemLog(action=action, user_id=user_id, details=details or {}, ip_address=client_ip(request))
        self.db.add(entry)
        logger.info(f"System log: {action} user={user_id}")
        return entry

    def login_event(
        self,
        user_id: Optional[UUID],
        success: bool,
        request: Optional[Request] = None,
        school_id: Optional[UUID] = None,
        role: Optional[str] = None,
        channel: str = "password",
    ) -> LoginEvent:
        user_agent = request.headers.get("user-agent") if request is not None else None
        event = LoginEvent(
            user_id=user_id,
            school_id=school_id,
            role=role,
            channel=channel,
            ip_address=client_ip(request),
            user_agent=user_agent[:500] if user_agent else None,
            success=success,
        )
        self.db.add(event)
        return event

"""Helpers turning ORM rows into JSON-ready dicts."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from ..core.security import ensure_utc


def iso(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def money(value: Optional[Decimal]) -> float:
    return round(float(value or 0), 2)


def sid(value: Optional[Any]) -> Optional[str]:
    return str(value) if value is not None else None


def format_user(user, membership=None, school=None) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "phone": user.phone,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "avatar_url": user.avatar_url,
        "is_active": user.is_active,
        "email_verified": user.email_verified,
        "last_login_at": iso(user.last_login_at),
        "school_id": sid(membership.school_id) if membership else None,
        "school_role": membership.role if membership else None,
        "school_name": school.name if school else None,
        "school_code": school.code if school else None,
    }

"""Shared request model configuration and field validators."""
import re
from typing import ClassVar, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

PHONE_RE = re.compile(r'^\+?[1-9]\d{0,15}$')
NAME_RE = re.compile(r"^[A-Za-z][A-Za-z\s'\-]*$")
IDENTIFIER_RE = re.compile(r'^[A-Za-z0-9_-]+$')
SCHOOL_CODE_RE = re.compile(r'^[A-Za-z0-9_]{3,20}$')
TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


class CampusSchema(BaseModel):
    """Request bodies accept both snake_case and camelCase keys."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PartialUpdate(CampusSchema):
    """Update body where only the keys sent are applied.

    Fields named in ``required_fields`` back NOT NULL columns, so an explicit
    null for them is rejected instead of being written.
    """
    required_fields: ClassVar[FrozenSet[str]] = frozenset()

    @model_validator(mode='after')
    def reject_nulls(self):
        nulls = sorted(f for f in self.model_fields_set & self.required_fields if getattr(self, f) is None)
        if nulls:
            raise ValueError(f"{', '.join(nulls)} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


def check_password_strength(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r'[a-z]', value) or not re.search(r'[A-Z]', value) or not re.search(r'\d', value):
        raise ValueError("Password must contain uppercase, lowercase and a number")
    return value


def check_person_name(value: str) -> str:
    if not 2 <= len(value) <= 50:
        raise ValueError("Name must be between 2 and 50 characters")
    if not NAME_RE.match(value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def normalize_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = re.sub(r'\s+', '', value)
    if not value:
        return None
    if not PHONE_RE.match(value):
        raise ValueError("Invalid phone number")
    return value


def check_identifier(value: str) -> str:
    if not IDENTIFIER_RE.match(value):
        raise ValueError("Only letters, numbers, hyphens and underscores are allowed")
    return value.upper()


def check_school_code(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if not SCHOOL_CODE_RE.match(value):
        raise ValueError("School code must be 3-20 letters, numbers or underscores")
    return value.upper()


def check_time(value: str) -> str:
    if not TIME_RE.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value

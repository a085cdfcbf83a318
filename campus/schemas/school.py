from datetime import date, datetime
from typing import Dict, Optional, Any
from pydantic import EmailStr, Field, field_validator, model_validator

from .common import CampusSchema, PartialUpdate, check_password_strength, check_person_name, normalize_phone
from ..models.shared.school import SchoolType, SchoolStatus, SubscriptionPlan


class SchoolAdminCreate(CampusSchema):
    first_name: str
    last_name: str
    email: EmailStr
    password: str
    phone: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v: str) -> str:
        return check_person_name(v)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class SchoolCreate(CampusSchema):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: str = "Nigeria"
    school_type: SchoolType = Field(SchoolType.SECONDARY, alias="type")
    website: Optional[str] = None
    admin: Optional[SchoolAdminCreate] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class SchoolUpdate(PartialUpdate):
    required_fields = frozenset({'name', 'country', 'settings'})

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    logo_url: Optional[str] = None
    website: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class SubscriptionUpdate(CampusSchema):
    plan: SubscriptionPlan
    expires_at: Optional[datetime] = None


class SchoolStatusUpdate(CampusSchema):
    status: SchoolStatus


class FeatureUpdate(CampusSchema):
    features: Dict[str, bool]


class TermCreate(CampusSchema):
    name: str = Field(..., min_length=1, max_length=50)
    session: str = Field(..., min_length=4, max_length=20)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode='after')
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import EmailStr, Field, field_validator

from .common import CampusSchema, PartialUpdate, check_identifier, check_person_name, normalize_phone, check_password_strength
from ..models.tenant_specific.student import Gender, StudentStatus
from ..models.tenant_specific.teacher import TeacherStatus
from ..models.user import UserRole


class StudentCreate(CampusSchema):
    student_id: str = Field(..., min_length=1, max_length=50)
    first_name: str
    last_name: str
    class_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    guardian_email: Optional[EmailStr] = None
    admission_date: Optional[date] = None

    @field_validator('student_id')
    @classmethod
    def validate_student_id(cls, v: str) -> str:
        return check_identifier(v)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v: str) -> str:
        return check_person_name(v)

    @field_validator('guardian_phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)

    @field_validator('date_of_birth')
    @classmethod
    def not_in_future(cls, v: Optional[date]) -> Optional[date]:
        if v and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class StudentUpdate(PartialUpdate):
    required_fields = frozenset({'first_name', 'last_name', 'status'})

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    class_id: Optional[UUID] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    guardian_email: Optional[EmailStr] = None
    status: Optional[StudentStatus] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return check_person_name(v) if v is not None else v

    @field_validator('guardian_phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class TeacherCreate(CampusSchema):
    email: EmailStr
    first_name: str
    last_name: str
    phone: Optional[str] = None
    password: Optional[str] = None
    employee_id: str = Field(..., min_length=1, max_length=50)
    qualification: Optional[str] = None
    specialization: Optional[str] = None
    hire_date: Optional[date] = None
    salary: Optional[Decimal] = Field(None, ge=0)

    @field_validator('employee_id')
    @classmethod
    def validate_employee_id(cls, v: str) -> str:
        return check_identifier(v)

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v: str) -> str:
        return check_person_name(v)

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        return check_password_strength(v) if v else v


class TeacherUpdate(PartialUpdate):
    required_fields = frozenset({'status'})

    qualification: Optional[str] = None
    specialization: Optional[str] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    status: Optional[TeacherStatus] = None


class UserUpdate(PartialUpdate):
    required_fields = frozenset({'first_name', 'last_name', 'role', 'is_active'})

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_names(cls, v: Optional[str]) -> Optional[str]:
        return check_person_name(v) if v is not None else v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class SchoolMemberAdd(CampusSchema):
    email: EmailStr
    role: UserRole
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: Optional[str]) -> Optional[str]:
        return check_password_strength(v) if v else v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class MemberRoleUpdate(CampusSchema):
    role: UserRole


class ParentLinkCreate(CampusSchema):
    student_id: UUID
    parent_email: Optional[EmailStr] = None
    relationship_type: str = Field("parent", max_length=30)


class ParentLinkClaim(CampusSchema):
    code: str = Field(..., min_length=8, max_length=8)

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()

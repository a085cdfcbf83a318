from typing import Optional
from pydantic import EmailStr, Field, field_validator

from .common import CampusSchema, check_password_strength, check_person_name, normalize_phone, check_school_code
from ..models.user import UserRole, ADMIN_ROLES
from ..models.shared.auth_tokens import OtpPurpose

SELF_REGISTER_ROLES = ("student", "parent", "teacher", "school_admin")


class RegisterRequest(CampusSchema):
    email: EmailStr
    password: str
    first_name: str
    last_name: str
    role: str
    phone: Optional[str] = None
    school_code: Optional[str] = None
    child_code: Optional[str] = None

    @field_validator('email')
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

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

    @field_validator('school_code')
    @classmethod
    def validate_school_code(cls, v: Optional[str]) -> Optional[str]:
        return check_school_code(v)

    @field_validator('role')
    @classmethod
    def check_role(cls, v: str) -> str:
        if v not in SELF_REGISTER_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(SELF_REGISTER_ROLES)}")
        return v


class LoginRequest(CampusSchema):
    email_or_phone: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    school_code: Optional[str] = None

    @field_validator('school_code')
    @classmethod
    def validate_school_code(cls, v: Optional[str]) -> Optional[str]:
        return check_school_code(v)


class OtpRequest(CampusSchema):
    email_or_phone: str = Field(..., min_length=3)
    purpose: OtpPurpose = OtpPurpose.LOGIN


class OtpVerifyRequest(CampusSchema):
    email_or_phone: str = Field(..., min_length=3)
    otp: str = Field(..., pattern=r'^\d{6}$')
    purpose: OtpPurpose = OtpPurpose.LOGIN


class GuestLoginRequest(CampusSchema):
    school_code: Optional[str] = None
    school_id: Optional[str] = None

    @field_validator('school_code')
    @classmethod
    def validate_school_code(cls, v: Optional[str]) -> Optional[str]:
        return check_school_code(v)


class AdminLoginRequest(CampusSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)
    admin_key: Optional[str] = None


class MagicLinkRequest(CampusSchema):
    email: EmailStr
    admin_role: str
    first_name: str = "Admin"
    last_name: str = "User"

    @field_validator('admin_role')
    @classmethod
    def check_admin_role(cls, v: str) -> str:
        if v not in ADMIN_ROLES:
            raise ValueError(f"Admin role must be one of: {', '.join(sorted(ADMIN_ROLES))}")
        return v


class MagicLoginRequest(CampusSchema):
    token: str = Field(..., min_length=10)


class ForgotPasswordRequest(CampusSchema):
    email: EmailStr


class ResetRequest(CampusSchema):
    email_or_phone: str = Field(..., min_length=3)


class ResetPasswordRequest(CampusSchema):
    token: str = Field(..., min_length=10)
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password_strength(v)


class SchoolLoginRequest(CampusSchema):
    school_identifier: str = Field(..., min_length=2)
    role: str
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator('role')
    @classmethod
    def check_role(cls, v: str) -> str:
        allowed = (UserRole.SCHOOL_ADMIN.value, UserRole.TEACHER.value, UserRole.STAFF.value)
        if v not in allowed:
            raise ValueError(f"Role must be one of: {', '.join(allowed)}")
        return v

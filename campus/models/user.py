from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship, validates
import enum
import re

from .base import Base


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    SUPPORT_ADMIN = "support_admin"
    SALES_ADMIN = "sales_admin"
    CONTENT_ADMIN = "content_admin"
    FINANCE_ADMIN = "finance_admin"
    SCHOOL_ADMIN = "school_admin"
    PRINCIPAL = "principal"
    TEACHER = "teacher"
    STAFF = "staff"
    STUDENT = "student"
    PARENT = "parent"
    GUEST = "guest"


ADMIN_ROLES = {
    UserRole.SUPER_ADMIN.value,
    UserRole.SUPPORT_ADMIN.value,
    UserRole.SALES_ADMIN.value,
    UserRole.CONTENT_ADMIN.value,
    UserRole.FINANCE_ADMIN.value,
}

SCHOOL_MANAGER_ROLES = {UserRole.SCHOOL_ADMIN.value, UserRole.PRINCIPAL.value}

STAFF_ROLES = SCHOOL_MANAGER_ROLES | {UserRole.TEACHER.value, UserRole.STAFF.value}


class User(Base):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(30), nullable=False, default=UserRole.STUDENT.value, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    avatar_url = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)
    phone_verified = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    memberships = relationship("SchoolUser", back_populates="user", lazy="noload")

    @validates('email')
    def validate_email(self, key, email):
        if email and not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email):
            raise ValueError("Invalid email format")
        return email.lower() if email else email

    @validates('phone')
    def validate_phone(self, key, phone):
        if phone:
            phone = re.sub(r'\s+', '', phone)
        return phone or None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class SchoolUser(Base):
    __tablename__ = "school_users"
    __table_args__ = (UniqueConstraint("school_id", "user_id", name="uq_school_user"),)

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(30), nullable=False)
    permissions = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime(timezone=True), nullable=True)

    school = relationship("School", back_populates="memberships", lazy="noload")
    user = relationship("User", back_populates="memberships", lazy="noload")

from sqlalchemy import Column, String, DateTime, JSON, Text
from sqlalchemy.orm import relationship, validates
import enum
import re

from ..base import Base


class SchoolType(str, enum.Enum):
    NURSERY = "nursery"
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    MIXED = "mixed"


class SchoolStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    PENDING = "pending"


class SubscriptionPlan(str, enum.Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"


DEFAULT_FEATURES = {
    "attendance": True,
    "grades": True,
    "fees": True,
    "messaging": True,
    "timetables": True,
    "smartsave": False,
    "parent_portal": True,
}


class School(Base):
    __tablename__ = "schools"

    name = Column(String(200), nullable=False, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    country = Column(String(100), nullable=False, default="Nigeria")
    school_type = Column(String(20), nullable=False, default=SchoolType.SECONDARY.value)
    logo_url = Column(String(500), nullable=True)
    website = Column(String(255), nullable=True)

    subscription_plan = Column(String(20), nullable=False, default=SubscriptionPlan.FREE.value)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=SchoolStatus.ACTIVE.value, index=True)

    features = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_FEATURES))
    settings = Column(JSON, nullable=False, default=dict)

    memberships = relationship("SchoolUser", back_populates="school", lazy="noload")

    @validates('email')
    def validate_email(self, key, email):
        if email and not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email):
            raise ValueError("Invalid email format")
        return email.lower() if email else email

    def __repr__(self):
        return f"<School(code='{self.code}', name='{self.name}')>"

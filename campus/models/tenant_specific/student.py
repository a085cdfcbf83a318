from sqlalchemy import Column, String, Date, DateTime, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship, validates
import enum
import re

from ..base import BaseModel


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class StudentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    GRADUATED = "graduated"
    TRANSFERRED = "transferred"


class ParentLinkStatus(str, enum.Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    APPROVED = "approved"
    REJECTED = "rejected"


class Student(BaseModel):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("school_id", "student_id", name="uq_student_number"),)

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id"), nullable=True, index=True)

    student_id = Column(String(50), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)
    address = Column(Text, nullable=True)

    guardian_name = Column(String(200), nullable=True)
    guardian_phone = Column(String(20), nullable=True)
    guardian_email = Column(String(255), nullable=True)

    admission_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=StudentStatus.ACTIVE.value, index=True)

    school_class = relationship("SchoolClass", back_populates="students", lazy="noload")

    @validates('guardian_phone')
    def validate_phone(self, key, phone):
        if phone:
            phone = re.sub(r'\s+', '', phone)
        return phone or None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ParentStudent(BaseModel):
    __tablename__ = "parent_students"
    __table_args__ = (UniqueConstraint("parent_id", "student_id", name="uq_parent_student"),)

    parent_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    relationship_type = Column(String(30), nullable=False, default="parent")


class ParentLinkRequest(BaseModel):
    __tablename__ = "parent_link_requests"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False)
    requested_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    parent_email = Column(String(255), nullable=True)
    relationship_type = Column(String(30), nullable=False, default="parent")

    code = Column(String(8), unique=True, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ParentLinkStatus.PENDING.value)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

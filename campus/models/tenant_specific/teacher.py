from sqlalchemy import Column, String, Date, Numeric, ForeignKey, Uuid, UniqueConstraint
import enum

from ..base import BaseModel


class TeacherStatus(str, enum.Enum):
    ACTIVE = "active"
    ON_LEAVE = "on_leave"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class Teacher(BaseModel):
    __tablename__ = "teachers"
    __table_args__ = (UniqueConstraint("school_id", "employee_id", name="uq_teacher_employee_id"),)

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    employee_id = Column(String(50), nullable=False)
    qualification = Column(String(200), nullable=True)
    specialization = Column(String(200), nullable=True)
    hire_date = Column(Date, nullable=True)
    salary = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=TeacherStatus.ACTIVE.value)

from sqlalchemy import Column, String, Date, Boolean, Integer, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from ..base import BaseModel


class AcademicTerm(BaseModel):
    __tablename__ = "academic_terms"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    session = Column(String(20), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, default=False, nullable=False)


class SchoolClass(BaseModel):
    __tablename__ = "classes"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    academic_term_id = Column(Uuid(as_uuid=True), ForeignKey("academic_terms.id"), nullable=True)
    class_teacher_id = Column(Uuid(as_uuid=True), ForeignKey("teachers.id"), nullable=True)

    name = Column(String(100), nullable=False)
    level = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False, default=30)
    status = Column(String(20), nullable=False, default="active")

    students = relationship("Student", back_populates="school_class", lazy="noload")


class Subject(BaseModel):
    __tablename__ = "subjects"
    __table_args__ = (UniqueConstraint("school_id", "code", name="uq_subject_code"),)

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)
    is_core = Column(Boolean, default=False, nullable=False)


class ClassSubject(BaseModel):
    __tablename__ = "class_subjects"
    __table_args__ = (UniqueConstraint("class_id", "subject_id", name="uq_class_subject"),)

    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("teachers.id"), nullable=True)

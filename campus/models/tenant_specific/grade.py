from sqlalchemy import Column, String, Numeric, Text, ForeignKey, Uuid
import enum

from ..base import BaseModel


class AssessmentType(str, enum.Enum):
    TEST = "test"
    EXAM = "exam"
    ASSIGNMENT = "assignment"
    PROJECT = "project"
    CONTINUOUS_ASSESSMENT = "continuous_assessment"


class Grade(BaseModel):
    __tablename__ = "grades"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    academic_term_id = Column(Uuid(as_uuid=True), ForeignKey("academic_terms.id"), nullable=True, index=True)

    assessment_type = Column(String(30), nullable=False)
    score = Column(Numeric(6, 2), nullable=False)
    max_score = Column(Numeric(6, 2), nullable=False, default=100)
    grade = Column(String(2), nullable=True)
    remarks = Column(Text, nullable=True)
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    @property
    def percentage(self) -> float:
        max_score = float(self.max_score or 0)
        return round(float(self.score) / max_score * 100, 2) if max_score else 0.0

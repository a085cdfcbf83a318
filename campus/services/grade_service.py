from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import NotFoundError, ValidationException
from ..models.tenant_specific.academics import SchoolClass, Subject
from ..models.tenant_specific.grade import Grade
from ..models.tenant_specific.student import Student
from ..utils.formatting import iso, money, sid

# Minimum percentage for each letter, highest first
GRADE_SCALE = [(80, "A"), (70, "B"), (60, "C"), (50, "D"), (40, "E")]

# Reporting bands used in school analytics
ANALYTICS_BANDS = [(80, "A"), (70, "B"), (60, "C"), (50, "D")]


def letter_grade(percentage: float, scale=GRADE_SCALE) -> str:
    for minimum, letter in scale:
        if percentage >= minimum:
            return letter
    return "F"


def percentage_of(score: Decimal, max_score: Decimal) -> float:
    return round(float(score) / float(max_score) * 100, 2) if max_score else 0.0


class GradeService(BaseService[Grade]):
    resource_name = "Grade"

    def __init__(self, db: AsyncSession):
        super().__init__(Grade, db)

    async def record(self, data: Dict[str, Any], recorded_by: UUID) -> Grade:
        student = await self.db.get(Student, data["student_id"])
        if student is None or student.is_deleted:
            raise NotFoundError("Student")
        school_class = await self.db.get(SchoolClass, data["class_id"])
        if school_class is None or school_class.school_id != student.school_id:
            raise NotFoundError("Class")
        subject = await self.db.get(Subject, data["subject_id"])
        if subject is None or subject.school_id != student.school_id:
            raise NotFoundError("Subject")

        data["assessment_type"] = data["assessment_type"].value
        if not data.get("grade"):
            data["grade"] = letter_grade(percentage_of(data["score"], data["max_score"]))
        return await self.create({**data, "recorded_by": recorded_by})

    async def amend(self, grade: Grade, data: Dict[str, Any]) -> Grade:
        score = data.get("score", grade.score)
        max_score = data.get("max_score", grade.max_score)
        if Decimal(str(score)) > Decimal(str(max_score)):
            raise ValidationException("score cannot exceed max_score", field="score")
        if ("score" in data or "max_score" in data or "grade" in data) and not data.get("grade"):
            data["grade"] = letter_grade(percentage_of(score, max_score))
        return await self.update(grade, data)

    async def for_student(self, student_id: UUID, term_id: Optional[UUID] = None,
                          subject_id: Optional[UUID] = None) -> List[tuple]:
        stmt = (
            select(Grade, Subject.name)
            .join(Subject, Subject.id == Grade.subject_id)
            .where(Grade.student_id == student_id, Grade.is_deleted == False)
        )
        if term_id:
            stmt = stmt.where(Grade.academic_term_id == term_id)
        if subject_id:
            stmt = stmt.where(Grade.subject_id == subject_id)
        result = await self.db.execute(stmt.order_by(Subject.name, Grade.created_at))
        return list(result.all())

    async def for_class_subject(self, class_id: UUID, subject_id: UUID,
                                term_id: Optional[UUID] = None) -> List[tuple]:
        stmt = (
            select(Grade, Student)
            .join(Student, Student.id == Grade.student_id)
            .where(Grade.class_id == class_id, Grade.subject_id == subject_id, Grade.is_deleted == False)
        )
        if term_id:
            stmt = stmt.where(Grade.academic_term_id == term_id)
        result = await self.db.execute(stmt.order_by(Student.last_name, Grade.created_at))
        return list(result.all())


def format_grade(grade: Grade, subject_name: Optional[str] = None) -> dict:
    data = {
        "id": str(grade.id),
        "student_id": str(grade.student_id),
        "subject_id": str(grade.subject_id),
        "class_id": str(grade.class_id),
        "academic_term_id": sid(grade.academic_term_id),
        "assessment_type": grade.assessment_type,
        "score": money(grade.score),
        "max_score": money(grade.max_score),
        "percentage": percentage_of(grade.score, grade.max_score),
        "grade": grade.grade,
        "remarks": grade.remarks,
        "created_at": iso(grade.created_at),
    }
    if subject_name is not None:
        data["subject_name"] = subject_name
    return data

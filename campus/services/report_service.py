# campus/services/report_service.py
"""Report cards, class performance and school analytics."""
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .attendance_service import AttendanceService, attendance_rate
from .fee_service import FeeService
from .grade_service import ANALYTICS_BANDS, letter_grade
from ..core.exceptions import NotFoundError, ValidationException
from ..models.tenant_specific.academics import AcademicTerm, SchoolClass, Subject
from ..models.tenant_specific.grade import Grade
from ..models.tenant_specific.student import Student
from ..utils.formatting import iso


def weighted_percentage(scores: List[tuple]) -> float:
    """Sum of scores over sum of maxima for (score, max_score) pairs."""
    total_max = sum(Decimal(str(m)) for _, m in scores)
    if not total_max:
        return 0.0
    total = sum(Decimal(str(s)) for s, _ in scores)
    return round(float(total / total_max * 100), 2)


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _term(self, term_id: UUID, school_id: UUID) -> AcademicTerm:
        term = await self.db.get(AcademicTerm, term_id)
        if term is None or term.school_id != school_id:
            raise NotFoundError("Academic term")
        return term

    async def report_card(self, student: Student, term_id: Optional[UUID]) -> dict:
        if term_id is None:
            raise ValidationException("term_id is required", field="term_id")
        term = await self._term(term_id, student.school_id)

        result = await self.db.execute(
            select(Grade, Subject)
            .join(Subject, Subject.id == Grade.subject_id)
            .where(Grade.student_id == student.id, Grade.academic_term_id == term.id, Grade.is_deleted == False)
            .order_by(Subject.name)
        )
        by_subject: Dict[UUID, dict] = {}
        for grade, subject in result.all():
            entry = by_subject.setdefault(subject.id, {"subject": subject, "scores": [], "assessments": []})
            entry["scores"].append((grade.score, grade.max_score))
            entry["assessments"].append({
                "assessment_type": grade.assessment_type,
                "score": float(grade.score),
                "max_score": float(grade.max_score),
            })

        subjects = []
        for entry in by_subject.values():
            average = weighted_percentage(entry["scores"])
            subjects.append({
                "subject_id": str(entry["subject"].id),
                "subject_name": entry["subject"].name,
                "average": average,
                "grade": letter_grade(average),
                "assessments": entry["assessments"],
            })
        overall = round(sum(s["average"] for s in subjects) / len(subjects), 2) if subjects else 0.0

        attendance = await AttendanceService(self.db).student_summary(student.id, term.start_date, term.end_date)
        school_class = await self.db.get(SchoolClass, student.class_id) if student.class_id else None
        return {
            "student": {
                "id": str(student.id),
                "student_id": student.student_id,
                "name": student.full_name,
                "class_name": school_class.name if school_class else None,
            },
            "term": {"id": str(term.id), "name": term.name, "session": term.session,
                     "start_date": iso(term.start_date), "end_date": iso(term.end_date)},
            "subjects": subjects,
            "overall_average": overall,
            "overall_grade": letter_grade(overall) if subjects else None,
            "attendance": attendance,
        }

    async def class_performance(self, school_class: SchoolClass, term_id: Optional[UUID] = None) -> dict:
        stmt = (
            select(Grade, Subject.name, Student)
            .join(Subject, Subject.id == Grade.subject_id)
            .join(Student, Student.id == Grade.student_id)
            .where(Grade.class_id == school_class.id, Grade.is_deleted == False)
        )
        if term_id:
            stmt = stmt.where(Grade.academic_term_id == term_id)
        rows = (await self.db.execute(stmt)).all()

        subject_scores = defaultdict(list)
        subject_names = {}
        student_scores = defaultdict(list)
        students = {}
        for grade, subject_name, student in rows:
            subject_scores[grade.subject_id].append((grade.score, grade.max_score))
            subject_names[grade.subject_id] = subject_name
            student_scores[student.id].append((grade.score, grade.max_score))
            students[student.id] = student

        subjects = []
        for subject_id, scores in subject_scores.items():
            percentages = [weighted_percentage([pair]) for pair in scores]
            subjects.append({
                "subject_id": str(subject_id),
                "subject_name": subject_names[subject_id],
                "average": weighted_percentage(scores),
                "highest": max(percentages),
                "lowest": min(percentages),
                "assessments": len(scores),
            })
        subjects.sort(key=lambda s: s["subject_name"])

        ranking = sorted(
            (
                {"student_id": str(sid), "name": students[sid].full_name,
                 "average": weighted_percentage(scores)}
                for sid, scores in student_scores.items()
            ),
            key=lambda r: r["average"],
            reverse=True,
        )
        for position, row in enumerate(ranking, start=1):
            row["position"] = position
            row["grade"] = letter_grade(row["average"])

        return {
            "class": {"id": str(school_class.id), "name": school_class.name, "level": school_class.level},
            "subjects": subjects,
            "ranking": ranking,
            "class_average": round(sum(r["average"] for r in ranking) / len(ranking), 2) if ranking else 0.0,
        }

    async def school_analytics(self, school_id: UUID, term_id: Optional[UUID] = None) -> dict:
        stmt = (
            select(Grade.score, Grade.max_score)
            .join(Student, Student.id == Grade.student_id)
            .where(Student.school_id == school_id, Grade.is_deleted == False)
        )
        if term_id:
            stmt = stmt.where(Grade.academic_term_id == term_id)
        rows = (await self.db.execute(stmt)).all()

        distribution = {letter: 0 for _, letter in ANALYTICS_BANDS}
        distribution["F"] = 0
        for score, max_score in rows:
            distribution[letter_grade(weighted_percentage([(score, max_score)]), ANALYTICS_BANDS)] += 1

        class_ids = (await self.db.execute(
            select(SchoolClass.id).where(SchoolClass.school_id == school_id, SchoolClass.is_deleted == False)
        )).scalars().all()
        counts = await AttendanceService(self.db).status_counts(class_ids=list(class_ids))

        return {
            "school_id": str(school_id),
            "grade_distribution": distribution,
            "total_assessments": len(rows),
            "average_score": weighted_percentage(rows) if rows else 0.0,
            "attendance": {**counts, "attendance_rate": attendance_rate(counts)},
            "fees": await FeeService(self.db).school_summary(school_id),
        }

from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.cache import invalidate_school
from ..core.exceptions import DuplicateError, NotFoundError, ValidationException
from ..models.tenant_specific.academics import AcademicTerm, SchoolClass, Subject, ClassSubject
from ..models.tenant_specific.student import Student, StudentStatus
from ..models.tenant_specific.teacher import Teacher
from ..utils.formatting import iso, sid


class ClassService(BaseService[SchoolClass]):
    resource_name = "Class"

    def __init__(self, db: AsyncSession):
        super().__init__(SchoolClass, db)

    async def _check_refs(self, school_id: UUID, data: Dict[str, Any]):
        if data.get("academic_term_id"):
            term = await self.db.get(AcademicTerm, data["academic_term_id"])
            if term is None or term.school_id != school_id:
                raise NotFoundError("Academic term")
        if data.get("class_teacher_id"):
            teacher = await self.db.get(Teacher, data["class_teacher_id"])
            if teacher is None or teacher.school_id != school_id:
                raise NotFoundError("Teacher")

    async def list_classes(self, school_id: UUID) -> List[Tuple[SchoolClass, int]]:
        counts = (
            select(Student.class_id, func.count(Student.id).label("student_count"))
            .where(Student.is_deleted == False, Student.status == StudentStatus.ACTIVE.value)
            .group_by(Student.class_id)
            .subquery()
        )
        result = await self.db.execute(
            select(SchoolClass, func.coalesce(counts.c.student_count, 0))
            .outerjoin(counts, counts.c.class_id == SchoolClass.id)
            .where(SchoolClass.school_id == school_id, SchoolClass.is_deleted == False)
            .order_by(SchoolClass.level, SchoolClass.name)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def create_class(self, school_id: UUID, data: Dict[str, Any]) -> SchoolClass:
        await self._check_refs(school_id, data)
        school_class = await self.create({"school_id": school_id, **data})
        await invalidate_school(school_id)
        return school_class

    async def update_class(self, school_class: SchoolClass, data: Dict[str, Any]) -> SchoolClass:
        await self._check_refs(school_class.school_id, data)
        if data.get("capacity") is not None:
            enrolled = await self.student_count(school_class.id)
            if data["capacity"] < enrolled:
                raise ValidationException(f"Capacity cannot be below current enrolment ({enrolled})",
                                          field="capacity")
        return await self.update(school_class, data)

    async def student_count(self, class_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Student).where(
                Student.class_id == class_id, Student.is_deleted == False,
                Student.status == StudentStatus.ACTIVE.value)
        )
        return result.scalar() or 0

    async def students(self, class_id: UUID) -> List[Student]:
        result = await self.db.execute(
            select(Student)
            .where(Student.class_id == class_id, Student.is_deleted == False,
                   Student.status == StudentStatus.ACTIVE.value)
            .order_by(Student.last_name, Student.first_name)
        )
        return list(result.scalars().all())

    async def subjects(self, class_id: UUID) -> List[dict]:
        result = await self.db.execute(
            select(ClassSubject, Subject)
            .join(Subject, Subject.id == ClassSubject.subject_id)
            .where(ClassSubject.class_id == class_id, ClassSubject.is_deleted == False)
            .order_by(Subject.name)
        )
        return [
            {"id": str(subject.id), "name": subject.name, "code": subject.code,
             "is_core": subject.is_core, "teacher_id": sid(cs.teacher_id)}
            for cs, subject in result.all()
        ]

    async def assign_subject(self, school_class: SchoolClass, subject_id: UUID,
                             teacher_id: Optional[UUID]) -> ClassSubject:
        subject = await self.db.get(Subject, subject_id)
        if subject is None or subject.school_id != school_class.school_id:
            raise NotFoundError("Subject")
        await self._check_refs(school_class.school_id, {"class_teacher_id": teacher_id})
        result = await self.db.execute(
            select(ClassSubject).where(ClassSubject.class_id == school_class.id, ClassSubject.subject_id == subject_id)
        )
        assignment = result.scalar_one_or_none()
        if assignment is None:
            assignment = ClassSubject(class_id=school_class.id, subject_id=subject_id, teacher_id=teacher_id)
            self.db.add(assignment)
        else:
            assignment.teacher_id = teacher_id
            assignment.is_deleted = False
        await self.db.commit()
        await self.db.refresh(assignment)
        return assignment


class SubjectService(BaseService[Subject]):
    resource_name = "Subject"

    def __init__(self, db: AsyncSession):
        super().__init__(Subject, db)

    async def list_subjects(self, school_id: UUID) -> List[Subject]:
        result = await self.db.execute(
            self.base_query().where(Subject.school_id == school_id).order_by(Subject.name)
        )
        return list(result.scalars().all())

    async def create_subject(self, school_id: UUID, data: Dict[str, Any]) -> Subject:
        existing = await self.db.execute(
            select(Subject.id).where(Subject.school_id == school_id, Subject.code == data["code"])
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Subject code already exists in this school", field="code")
        return await self.create({"school_id": school_id, **data})


def format_class(school_class: SchoolClass, student_count: Optional[int] = None) -> dict:
    data = {
        "id": str(school_class.id),
        "school_id": str(school_class.school_id),
        "name": school_class.name,
        "level": school_class.level,
        "academic_term_id": sid(school_class.academic_term_id),
        "class_teacher_id": sid(school_class.class_teacher_id),
        "capacity": school_class.capacity,
        "status": school_class.status,
        "created_at": iso(school_class.created_at),
    }
    if student_count is not None:
        data["student_count"] = student_count
    return data


def format_subject(subject: Subject) -> dict:
    return {
        "id": str(subject.id),
        "school_id": str(subject.school_id),
        "name": subject.name,
        "code": subject.code,
        "description": subject.description,
        "is_core": subject.is_core,
    }

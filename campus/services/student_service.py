from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging

from fastapi import UploadFile
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .csv_processor import CSVProcessor
from .parent_link_service import ParentLinkService
from ..core.auth import Principal, ensure_school_access
from ..core.cache import invalidate_school
from ..core.exceptions import DuplicateError, NotFoundError, PermissionDenied, ValidationException
from ..models.user import User, STAFF_ROLES
from ..models.tenant_specific.academics import SchoolClass
from ..models.tenant_specific.student import Student, StudentStatus
from ..utils.formatting import iso, sid

logger = logging.getLogger(__name__)


class StudentService(BaseService[Student]):
    resource_name = "Student"

    def __init__(self, db: AsyncSession):
        super().__init__(Student, db)

    async def assert_can_view(self, principal: Principal, student: Student):
        """Students see themselves, parents their linked children, staff their school."""
        if principal.is_guest:
            raise PermissionDenied("Insufficient permissions", required=["registered user"], current="guest")
        if principal.is_super_admin:
            return
        if principal.role == "student":
            if student.user_id != principal.id:
                raise PermissionDenied("Students can only view their own records")
            return
        if principal.role == "parent":
            if not await ParentLinkService(self.db).is_parent_of(principal.id, student.id):
                raise PermissionDenied("Parents can only view their linked children")
            return
        await ensure_school_access(self.db, principal, student.school_id, roles=STAFF_ROLES)

    async def class_in_school(self, class_id: UUID, school_id: UUID) -> SchoolClass:
        school_class = await self.db.get(SchoolClass, class_id)
        if school_class is None or school_class.is_deleted or school_class.school_id != school_id:
            raise NotFoundError("Class")
        return school_class

    async def enrolled_count(self, class_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Student).where(
                Student.class_id == class_id,
                Student.is_deleted == False,
                Student.status == StudentStatus.ACTIVE.value,
            )
        )
        return result.scalar() or 0

    async def _check_capacity(self, school_class: SchoolClass):
        if await self.enrolled_count(school_class.id) >= school_class.capacity:
            raise ValidationException(f"Class {school_class.name} is at full capacity", field="class_id")

    async def student_number_taken(self, school_id: UUID, student_number: str) -> bool:
        result = await self.db.execute(
            select(Student.id).where(Student.school_id == school_id, Student.student_id == student_number)
        )
        return result.first() is not None

    async def list_students(self, school_id: UUID, class_id: Optional[UUID], status: Optional[str],
                            search: Optional[str], page: int, limit: int) -> Tuple[List[Student], int]:
        stmt = self.base_query().where(Student.school_id == school_id)
        if class_id:
            stmt = stmt.where(Student.class_id == class_id)
        if status:
            stmt = stmt.where(Student.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(or_(
                func.lower(Student.first_name).like(pattern),
                func.lower(Student.last_name).like(pattern),
                func.lower(Student.student_id).like(pattern),
            ))
        return await self.paginate(stmt.order_by(Student.last_name, Student.first_name), page, limit)

    async def class_names(self, students: List[Student]) -> Dict[UUID, str]:
        class_ids = {s.class_id for s in students if s.class_id}
        if not class_ids:
            return {}
        result = await self.db.execute(select(SchoolClass.id, SchoolClass.name).where(SchoolClass.id.in_(class_ids)))
        return {row.id: row.name for row in result.all()}

    async def create_student(self, school_id: UUID, data: Dict[str, Any], commit: bool = True) -> Student:
        if await self.student_number_taken(school_id, data["student_id"]):
            raise DuplicateError("Student ID already exists in this school", field="student_id")
        if data.get("class_id"):
            await self._check_capacity(await self.class_in_school(data["class_id"], school_id))
        if data.get("user_id"):
            user = await self.db.get(User, data["user_id"])
            if user is None:
                raise NotFoundError("User")
        if data.get("gender") is not None and hasattr(data["gender"], "value"):
            data["gender"] = data["gender"].value
        student = await self.create({"school_id": school_id, **data}, commit=commit)
        if commit:
            await invalidate_school(school_id)
        return student

    async def update_student(self, student: Student, data: Dict[str, Any]) -> Student:
        new_class = data.get("class_id")
        if new_class and new_class != student.class_id:
            await self._check_capacity(await self.class_in_school(new_class, student.school_id))
        data = {k: (v.value if hasattr(v, "value") else v) for k, v in data.items()}
        student = await self.update(student, data)
        await invalidate_school(student.school_id)
        return student

    async def import_csv(self, school_id: UUID, file: UploadFile) -> Dict[str, Any]:
        try:
            valid_rows, errors = await CSVProcessor.process_student_csv(file)
        except ValueError as e:
            raise ValidationException(str(e), field="file")

        result = await self.db.execute(
            select(SchoolClass.name, SchoolClass.id).where(
                SchoolClass.school_id == school_id, SchoolClass.is_deleted == False)
        )
        classes = {name.lower(): class_id for name, class_id in result.all()}

        created = []
        seen = set()
        for row in valid_rows:
            row_number = row.pop("row_number")
            class_name = row.pop("class_name", None)
            if class_name:
                if class_name.lower() not in classes:
                    errors.append({"row_number": row_number, "data": row, "error": f"Unknown class: {class_name}"})
                    continue
                row["class_id"] = classes[class_name.lower()]
            if row["student_id"] in seen:
                errors.append({"row_number": row_number, "data": row, "error": "Duplicate student_id in file"})
                continue
            seen.add(row["student_id"])
            try:
                student = await self.create_student(school_id, row, commit=False)
            except (DuplicateError, ValidationException, NotFoundError) as e:
                errors.append({"row_number": row_number, "data": {k: str(v) for k, v in row.items()},
                               "error": e.message})
                continue
            created.append(student)

        await self.db.commit()
        await invalidate_school(school_id)
        logger.info(f"Imported {len(created)} students into school {school_id}, {len(errors)} errors")
        return {
            "created": len(created),
            "failed": len(errors),
            "student_ids": [s.student_id for s in created],
            "errors": sorted(errors, key=lambda e: e["row_number"]),
        }


def format_student(student: Student, class_name: Optional[str] = None) -> dict:
    return {
        "id": str(student.id),
        "school_id": str(student.school_id),
        "user_id": sid(student.user_id),
        "class_id": sid(student.class_id),
        "class_name": class_name,
        "student_id": student.student_id,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "date_of_birth": iso(student.date_of_birth),
        "gender": student.gender,
        "address": student.address,
        "guardian_name": student.guardian_name,
        "guardian_phone": student.guardian_phone,
        "guardian_email": student.guardian_email,
        "admission_date": iso(student.admission_date),
        "status": student.status,
        "created_at": iso(student.created_at),
    }

import datetime as dt
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import Field, field_validator, model_validator

from .common import CampusSchema, PartialUpdate, check_time
from ..models.tenant_specific.attendance import AttendanceStatus
from ..models.tenant_specific.grade import AssessmentType


class ClassCreate(CampusSchema):
    name: str = Field(..., min_length=1, max_length=100)
    level: str = Field(..., min_length=1, max_length=50)
    academic_term_id: Optional[UUID] = None
    class_teacher_id: Optional[UUID] = None
    capacity: int = Field(30, ge=1, le=100)


class ClassUpdate(PartialUpdate):
    required_fields = frozenset({'name', 'level', 'capacity', 'status'})

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    level: Optional[str] = Field(None, min_length=1, max_length=50)
    academic_term_id: Optional[UUID] = None
    class_teacher_id: Optional[UUID] = None
    capacity: Optional[int] = Field(None, ge=1, le=100)
    status: Optional[str] = None


class ClassSubjectAssign(CampusSchema):
    subject_id: UUID
    teacher_id: Optional[UUID] = None


class SubjectCreate(CampusSchema):
    name: str = Field(..., min_length=2, max_length=100)
    code: str = Field(..., min_length=2, max_length=20, pattern=r'^[A-Za-z0-9_-]+$')
    description: Optional[str] = None
    is_core: bool = False

    @field_validator('code')
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.upper()


class SubjectUpdate(PartialUpdate):
    required_fields = frozenset({'name', 'is_core'})

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    is_core: Optional[bool] = None


class AttendanceEntry(CampusSchema):
    student_id: UUID
    status: AttendanceStatus
    remarks: Optional[str] = None


class AttendanceMark(CampusSchema):
    date: dt.date
    attendance: List[AttendanceEntry] = Field(..., min_length=1)


class GradeCreate(CampusSchema):
    student_id: UUID
    subject_id: UUID
    class_id: UUID
    academic_term_id: Optional[UUID] = None
    assessment_type: AssessmentType
    score: Decimal = Field(..., ge=0)
    max_score: Decimal = Field(Decimal("100"), gt=0)
    grade: Optional[str] = Field(None, max_length=2)
    remarks: Optional[str] = None

    @model_validator(mode='after')
    def score_within_max(self):
        if self.score > self.max_score:
            raise ValueError("score cannot exceed max_score")
        return self


class GradeUpdate(PartialUpdate):
    required_fields = frozenset({'score', 'max_score'})

    score: Optional[Decimal] = Field(None, ge=0)
    max_score: Optional[Decimal] = Field(None, gt=0)
    grade: Optional[str] = Field(None, max_length=2)
    remarks: Optional[str] = None


class TimetableCreate(CampusSchema):
    class_id: UUID
    subject_id: UUID
    teacher_id: Optional[UUID] = None
    day_of_week: int = Field(..., ge=1, le=7)
    start_time: str
    end_time: str
    room: Optional[str] = Field(None, max_length=50)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: str) -> str:
        return check_time(v)

    @model_validator(mode='after')
    def end_after_start(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class TimetableUpdate(PartialUpdate):
    required_fields = frozenset({'subject_id', 'day_of_week', 'start_time', 'end_time'})

    subject_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    day_of_week: Optional[int] = Field(None, ge=1, le=7)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    room: Optional[str] = Field(None, max_length=50)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, v: Optional[str]) -> Optional[str]:
        return check_time(v) if v is not None else v

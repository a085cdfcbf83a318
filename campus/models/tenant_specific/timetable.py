from sqlalchemy import Column, String, Integer, ForeignKey, Uuid

from ..base import BaseModel


class Timetable(BaseModel):
    __tablename__ = "timetables"

    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    subject_id = Column(Uuid(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), ForeignKey("teachers.id"), nullable=True, index=True)

    day_of_week = Column(Integer, nullable=False)
    # "HH:MM" strings compare correctly as text
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    room = Column(String(50), nullable=True)

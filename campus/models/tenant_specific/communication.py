from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON, ForeignKey, Uuid
import enum

from ..base import BaseModel


class TargetAudience(str, enum.Enum):
    ALL = "all"
    STUDENTS = "students"
    TEACHERS = "teachers"
    PARENTS = "parents"
    STAFF = "staff"


class Priority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class EventType(str, enum.Enum):
    EXAM = "exam"
    HOLIDAY = "holiday"
    MEETING = "meeting"
    SPORTS = "sports"
    CULTURAL = "cultural"
    ACADEMIC = "academic"
    OTHER = "other"


class Announcement(BaseModel):
    __tablename__ = "announcements"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    author_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    target_audience = Column(String(20), nullable=False, default=TargetAudience.ALL.value)
    priority = Column(String(10), nullable=False, default=Priority.NORMAL.value)
    is_published = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)


class Event(BaseModel):
    __tablename__ = "events"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(String(20), nullable=False, default=EventType.OTHER.value)
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(200), nullable=True)
    is_all_day = Column(Boolean, default=False, nullable=False)


class Message(BaseModel):
    __tablename__ = "messages"

    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(20), nullable=False, default="direct")
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), nullable=False, default="info")
    data = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

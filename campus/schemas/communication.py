from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import Field, field_validator, model_validator

from .common import CampusSchema, PartialUpdate
from ..core.security import ensure_utc
from ..models.tenant_specific.communication import TargetAudience, Priority, EventType

BROADCAST_AUDIENCES = ("all", "schools", "admins")


class AnnouncementCreate(CampusSchema):
    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=1)
    target_audience: TargetAudience = TargetAudience.ALL
    priority: Priority = Priority.NORMAL
    is_published: bool = True
    expires_at: Optional[datetime] = None


class AnnouncementUpdate(PartialUpdate):
    required_fields = frozenset({'title', 'content', 'target_audience', 'priority', 'is_published'})

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    content: Optional[str] = None
    target_audience: Optional[TargetAudience] = None
    priority: Optional[Priority] = None
    is_published: Optional[bool] = None
    expires_at: Optional[datetime] = None


class EventCreate(CampusSchema):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None
    event_type: EventType = EventType.OTHER
    start_date: datetime
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    is_all_day: bool = False

    @field_validator('start_date', 'end_date')
    @classmethod
    def as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode='after')
    def end_not_before_start(self):
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventUpdate(PartialUpdate):
    required_fields = frozenset({'title', 'event_type', 'start_date', 'is_all_day'})

    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    event_type: Optional[EventType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    is_all_day: Optional[bool] = None


class MessageCreate(CampusSchema):
    recipient_id: UUID
    subject: Optional[str] = Field(None, max_length=200)
    content: str = Field(..., min_length=1)
    message_type: str = Field("direct", max_length=20)


class BroadcastRequest(CampusSchema):
    title: str = Field(..., min_length=3, max_length=200)
    message: str = Field(..., min_length=1)
    target_audience: str = Field("all", pattern=r'^(all|schools|admins)$')
    type: str = Field("announcement", max_length=30)

"""Database models for Campus."""
from .base import Base
from .shared.school import School
from .shared.auth_tokens import OtpCode, PasswordResetToken, MagicLink, RevokedToken, GuestSession
from .shared.audit import SystemLog, LoginEvent
from .user import User, SchoolUser
from .tenant_specific.academics import AcademicTerm, SchoolClass, Subject, ClassSubject
from .tenant_specific.student import Student, ParentStudent, ParentLinkRequest
from .tenant_specific.teacher import Teacher
from .tenant_specific.attendance import Attendance
from .tenant_specific.grade import Grade
from .tenant_specific.fee_management import FeeStructure, Payment
from .tenant_specific.timetable import Timetable
from .tenant_specific.communication import Announcement, Event, Message, Notification

__all__ = [
    "Base",
    "School",
    "OtpCode",
    "PasswordResetToken",
    "MagicLink",
    "RevokedToken",
    "GuestSession",
    "SystemLog",
    "LoginEvent",
    "User",
    "SchoolUser",
    "AcademicTerm",
    "SchoolClass",
    "Subject",
    "ClassSubject",
    "Student",
    "ParentStudent",
    "ParentLinkRequest",
    "Teacher",
    "Attendance",
    "Grade",
    "FeeStructure",
    "Payment",
    "Timetable",
    "Announcement",
    "Event",
    "Message",
    "Notification",
]

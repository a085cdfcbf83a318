from sqlalchemy import Column, String, Boolean, JSON, ForeignKey, Uuid

from ..base import Base


class SystemLog(Base):
    __tablename__ = "system_logs"

    action = Column(String(50), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)


class LoginEvent(Base):
    __tablename__ = "login_events"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=True, index=True)
    role = Column(String(30), nullable=True)
    channel = Column(String(20), nullable=False, default="password")
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    success = Column(Boolean, nullable=False, default=True)

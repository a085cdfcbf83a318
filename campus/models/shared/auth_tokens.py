from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid
import enum

from ..base import Base


class OtpPurpose(str, enum.Enum):
    LOGIN = "login"
    VERIFY = "verify"
    RESET = "reset"


class OtpCode(Base):
    __tablename__ = "otp_codes"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    code_hash = Column(String(64), nullable=False)
    purpose = Column(String(10), nullable=False)
    channel = Column(String(10), nullable=False, default="email")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)


class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)


class MagicLink(Base):
    __tablename__ = "magic_links"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    created_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class GuestSession(Base):
    __tablename__ = "guest_sessions"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=True)
    ip_address = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

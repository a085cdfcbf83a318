from sqlalchemy import Column, String, Date, DateTime, Boolean, Numeric, Text, ForeignKey, Uuid
import enum

from ..base import BaseModel


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    SMARTSAVE = "smartsave"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class FeeStatus(str, enum.Enum):
    PAID = "paid"
    PARTIAL = "partial"
    UNPAID = "unpaid"


class FeeStructure(BaseModel):
    __tablename__ = "fee_structures"

    school_id = Column(Uuid(as_uuid=True), ForeignKey("schools.id"), nullable=False, index=True)
    class_id = Column(Uuid(as_uuid=True), ForeignKey("classes.id"), nullable=True, index=True)
    academic_term_id = Column(Uuid(as_uuid=True), ForeignKey("academic_terms.id"), nullable=True)

    name = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=True)
    is_mandatory = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)


class Payment(BaseModel):
    __tablename__ = "payments"

    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    fee_structure_id = Column(Uuid(as_uuid=True), ForeignKey("fee_structures.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)
    reference = Column(String(50), unique=True, nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.COMPLETED.value)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

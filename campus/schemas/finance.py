from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import Field

from .common import CampusSchema
from ..models.tenant_specific.fee_management import PaymentMethod


class FeeStructureCreate(CampusSchema):
    school_id: UUID
    class_id: Optional[UUID] = None
    academic_term_id: Optional[UUID] = None
    name: str = Field(..., min_length=2, max_length=100)
    amount: Decimal = Field(..., gt=0)
    due_date: Optional[date] = None
    is_mandatory: bool = True
    description: Optional[str] = None


class PaymentCreate(CampusSchema):
    student_id: UUID
    fee_structure_id: UUID
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

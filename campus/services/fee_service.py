from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import logging
import secrets

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .notification_service import NotificationService
from ..core.exceptions import DuplicateError, NotFoundError, ValidationException, SchoolNotFound
from ..core.security import utcnow
from ..models.shared.school import School
from ..models.tenant_specific.academics import SchoolClass
from ..models.tenant_specific.fee_management import FeeStructure, Payment, PaymentStatus, FeeStatus
from ..models.tenant_specific.student import Student, StudentStatus
from ..utils.formatting import iso, money, sid

logger = logging.getLogger(__name__)


def fee_status(total: Decimal, paid: Decimal) -> str:
    if paid >= total:
        return FeeStatus.PAID.value
    if paid > 0:
        return FeeStatus.PARTIAL.value
    return FeeStatus.UNPAID.value


def generate_reference() -> str:
    return f"PAY-{utcnow():%Y%m%d}-{secrets.token_hex(4).upper()}"


class FeeService(BaseService[FeeStructure]):
    resource_name = "Fee structure"

    def __init__(self, db: AsyncSession):
        super().__init__(FeeStructure, db)

    async def create_structure(self, data: Dict[str, Any]) -> FeeStructure:
        school = await self.db.get(School, data["school_id"])
        if school is None or school.is_deleted:
            raise SchoolNotFound()
        if data.get("class_id"):
            school_class = await self.db.get(SchoolClass, data["class_id"])
            if school_class is None or school_class.school_id != school.id:
                raise NotFoundError("Class")
        return await self.create(data)

    async def list_structures(self, school_id: UUID, class_id: Optional[UUID] = None,
                              term_id: Optional[UUID] = None) -> List[FeeStructure]:
        stmt = self.base_query().where(FeeStructure.school_id == school_id)
        if class_id:
            stmt = stmt.where(or_(FeeStructure.class_id == class_id, FeeStructure.class_id.is_(None)))
        if term_id:
            stmt = stmt.where(FeeStructure.academic_term_id == term_id)
        result = await self.db.execute(stmt.order_by(FeeStructure.due_date, FeeStructure.name))
        return list(result.scalars().all())

    async def applicable_structures(self, student: Student) -> List[FeeStructure]:
        stmt = self.base_query().where(FeeStructure.school_id == student.school_id)
        if student.class_id:
            stmt = stmt.where(or_(FeeStructure.class_id.is_(None), FeeStructure.class_id == student.class_id))
        else:
            stmt = stmt.where(FeeStructure.class_id.is_(None))
        result = await self.db.execute(stmt.order_by(FeeStructure.due_date, FeeStructure.name))
        return list(result.scalars().all())

    async def paid_by_structure(self, student_id: UUID) -> Dict[UUID, Decimal]:
        result = await self.db.execute(
            select(Payment.fee_structure_id, func.sum(Payment.amount))
            .where(Payment.student_id == student_id, Payment.status == PaymentStatus.COMPLETED.value,
                   Payment.is_deleted == False)
            .group_by(Payment.fee_structure_id)
        )
        return {fee_id: Decimal(str(total or 0)) for fee_id, total in result.all()}

    async def record_payment(self, data: Dict[str, Any], recorded_by: UUID) -> Payment:
        student = await self.db.get(Student, data["student_id"])
        if student is None or student.is_deleted:
            raise NotFoundError("Student")
        structure = await self.get(data["fee_structure_id"])
        if structure is None:
            raise NotFoundError("Fee structure")
        if structure.school_id != student.school_id:
            raise ValidationException("Fee structure belongs to another school", field="fee_structure_id")
        if structure.class_id is not None and structure.class_id != student.class_id:
            raise ValidationException("Fee structure does not apply to this student's class",
                                      field="fee_structure_id")

        paid = (await self.paid_by_structure(student.id)).get(structure.id, Decimal("0"))
        balance = Decimal(str(structure.amount)) - paid
        if Decimal(str(data["amount"])) > balance:
            raise ValidationException(f"Payment exceeds outstanding balance of {money(balance)}", field="amount")

        reference = data.get("reference") or generate_reference()
        existing = await self.db.execute(select(Payment.id).where(Payment.reference == reference))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Payment reference already used", field="reference")

        payment = Payment(
            student_id=student.id,
            fee_structure_id=structure.id,
            amount=data["amount"],
            payment_method=data["payment_method"].value,
            reference=reference,
            status=PaymentStatus.COMPLETED.value,
            paid_at=utcnow(),
            notes=data.get("notes"),
            recorded_by=recorded_by,
        )
        self.db.add(payment)
        if student.user_id:
            NotificationService(self.db).notify(
                student.user_id,
                "Payment received",
                f"Payment of {money(payment.amount)} for {structure.name} was recorded.",
                "payment",
                {"reference": reference},
            )
        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(f"Recorded payment {reference} for student {student.id}")
        return payment

    async def student_status(self, student: Student) -> dict:
        structures = await self.applicable_structures(student)
        paid_map = await self.paid_by_structure(student.id)
        fees = []
        total_due = total_paid = Decimal("0")
        for structure in structures:
            amount = Decimal(str(structure.amount))
            paid = paid_map.get(structure.id, Decimal("0"))
            total_due += amount
            total_paid += paid
            fees.append({
                "fee_structure_id": str(structure.id),
                "name": structure.name,
                "due_date": iso(structure.due_date),
                "total": money(amount),
                "paid": money(paid),
                "balance": money(max(amount - paid, Decimal("0"))),
                "status": fee_status(amount, paid),
            })
        return {
            "student_id": str(student.id),
            "fees": fees,
            "total_due": money(total_due),
            "total_paid": money(total_paid),
            "balance": money(max(total_due - total_paid, Decimal("0"))),
            "status": fee_status(total_due, total_paid) if structures else FeeStatus.PAID.value,
        }

    async def payments(self, student_id: UUID, page: int, limit: int) -> Tuple[List[Payment], int]:
        stmt = (
            select(Payment)
            .where(Payment.student_id == student_id, Payment.is_deleted == False)
            .order_by(Payment.paid_at.desc())
        )
        return await self.paginate(stmt, page, limit)

    async def school_summary(self, school_id: UUID) -> dict:
        structures = await self.list_structures(school_id)
        result = await self.db.execute(
            select(Student.class_id, func.count())
            .where(Student.school_id == school_id, Student.is_deleted == False,
                   Student.status == StudentStatus.ACTIVE.value)
            .group_by(Student.class_id)
        )
        per_class = {class_id: count for class_id, count in result.all()}
        enrolled = sum(per_class.values())

        expected = Decimal("0")
        for structure in structures:
            students = enrolled if structure.class_id is None else per_class.get(structure.class_id, 0)
            expected += Decimal(str(structure.amount)) * students

        result = await self.db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0), func.count(Payment.id))
            .join(Student, Student.id == Payment.student_id)
            .where(Student.school_id == school_id, Payment.status == PaymentStatus.COMPLETED.value,
                   Payment.is_deleted == False)
        )
        collected, payment_count = result.one()
        collected = Decimal(str(collected or 0))
        return {
            "school_id": str(school_id),
            "fee_structures": len(structures),
            "students": enrolled,
            "expected": money(expected),
            "collected": money(collected),
            "outstanding": money(max(expected - collected, Decimal("0"))),
            "payments": payment_count,
            "collection_rate": round(float(collected / expected * 100), 2) if expected else 0.0,
        }


def format_structure(structure: FeeStructure) -> dict:
    return {
        "id": str(structure.id),
        "school_id": str(structure.school_id),
        "class_id": sid(structure.class_id),
        "academic_term_id": sid(structure.academic_term_id),
        "name": structure.name,
        "amount": money(structure.amount),
        "due_date": iso(structure.due_date),
        "is_mandatory": structure.is_mandatory,
        "description": structure.description,
    }


def format_payment(payment: Payment) -> dict:
    return {
        "id": str(payment.id),
        "student_id": str(payment.student_id),
        "fee_structure_id": str(payment.fee_structure_id),
        "amount": money(payment.amount),
        "payment_method": payment.payment_method,
        "reference": payment.reference,
        "status": payment.status,
        "paid_at": iso(payment.paid_at),
        "notes": payment.notes,
    }

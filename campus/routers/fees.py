from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, ensure_school_access, get_current_user
from ..core.database import get_db
from ..models.user import SCHOOL_MANAGER_ROLES, UserRole
from ..schemas.finance import FeeStructureCreate, PaymentCreate
from ..services.fee_service import FeeService, format_payment, format_structure
from ..services.student_service import StudentService
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/fees", tags=["Fees"])

FINANCE_ROLES = SCHOOL_MANAGER_ROLES | {UserRole.STAFF.value}


@router.post("/structure", status_code=status.HTTP_201_CREATED)
async def create_fee_structure(payload: FeeStructureCreate, principal: Principal = Depends(get_current_user),
                               db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, payload.school_id, roles=FINANCE_ROLES)
    structure = await FeeService(db).create_structure(payload.model_dump())
    return {"id": str(structure.id), "message": "Fee structure created successfully",
            "fee_structure": format_structure(structure)}


@router.get("/structure/school/{school_id}")
async def list_fee_structures(
    school_id: UUID,
    class_id: Optional[UUID] = Query(None),
    term_id: Optional[UUID] = Query(None),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ensure_school_access(db, principal, school_id)
    structures = await FeeService(db).list_structures(school_id, class_id, term_id)
    return {"fee_structures": [format_structure(s) for s in structures]}


@router.post("/payment", status_code=status.HTTP_201_CREATED)
async def record_payment(payload: PaymentCreate, principal: Principal = Depends(get_current_user),
                         db: AsyncSession = Depends(get_db)):
    student = await StudentService(db).get_or_404(payload.student_id)
    await ensure_school_access(db, principal, student.school_id, roles=FINANCE_ROLES)
    payment = await FeeService(db).record_payment(payload.model_dump(), principal.id)
    return {"id": str(payment.id), "message": "Payment recorded successfully",
            "reference": payment.reference, "payment": format_payment(payment)}


@router.get("/student/{student_id}/status")
async def student_fee_status(student_id: UUID, principal: Principal = Depends(get_current_user),
                             db: AsyncSession = Depends(get_db)):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    return await FeeService(db).student_status(student)


@router.get("/student/{student_id}/payments")
async def student_payments(
    student_id: UUID,
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = StudentService(db)
    student = await service.get_or_404(student_id)
    await service.assert_can_view(principal, student)
    payments, total = await FeeService(db).payments(student_id, pagination.page, pagination.limit)
    return Paginator.create_response([format_payment(p) for p in payments], pagination.page, pagination.limit, total)


@router.get("/school/{school_id}/summary")
async def school_fee_summary(school_id: UUID, principal: Principal = Depends(get_current_user),
                             db: AsyncSession = Depends(get_db)):
    await ensure_school_access(db, principal, school_id, roles=FINANCE_ROLES)
    return await FeeService(db).school_summary(school_id)

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, get_current_user, require_roles
from ..core.database import get_db
from ..models.tenant_specific.student import ParentLinkRequest
from ..schemas.people import ParentLinkClaim, ParentLinkCreate
from ..services.parent_link_service import ParentLinkService
from ..utils.formatting import iso, sid

router = APIRouter(prefix="/api/parent-links", tags=["Parent Links"])


def format_link(link: ParentLinkRequest, include_code: bool = False) -> dict:
    data = {
        "id": str(link.id),
        "school_id": str(link.school_id),
        "student_id": str(link.student_id),
        "parent_id": sid(link.parent_id),
        "parent_email": link.parent_email,
        "relationship_type": link.relationship_type,
        "status": link.status,
        "expires_at": iso(link.expires_at),
        "claimed_at": iso(link.claimed_at),
        "reviewed_at": iso(link.reviewed_at),
    }
    if include_code:
        data["code"] = link.code
    return data


@router.post("/request", status_code=status.HTTP_201_CREATED)
async def create_link_request(payload: ParentLinkCreate, principal: Principal = Depends(get_current_user),
                              db: AsyncSession = Depends(get_db)):
    link = await ParentLinkService(db).create_request(
        principal, payload.student_id, payload.parent_email, payload.relationship_type
    )
    return {"message": "Link code created", "link": format_link(link, include_code=True)}


@router.post("/claim")
async def claim_link(payload: ParentLinkClaim, principal: Principal = Depends(require_roles("parent")),
                     db: AsyncSession = Depends(get_db)):
    link = await ParentLinkService(db).claim(payload.code, principal.user)
    return {"message": "Link request submitted for approval", "link": format_link(link)}


@router.post("/{link_id}/approve")
async def approve_link(link_id: UUID, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    link = await ParentLinkService(db).review(link_id, principal, approve=True)
    return {"message": "Parent link approved", "link": format_link(link)}


@router.post("/{link_id}/reject")
async def reject_link(link_id: UUID, principal: Principal = Depends(get_current_user),
                      db: AsyncSession = Depends(get_db)):
    link = await ParentLinkService(db).review(link_id, principal, approve=False)
    return {"message": "Parent link rejected", "link": format_link(link)}


@router.get("/my")
async def my_children(principal: Principal = Depends(require_roles("parent")), db: AsyncSession = Depends(get_db)):
    rows = await ParentLinkService(db).children_of(principal.id)
    return {
        "children": [
            {
                "id": str(student.id),
                "student_id": student.student_id,
                "name": student.full_name,
                "school_id": str(student.school_id),
                "class_name": class_name,
                "relationship": relationship_type,
            }
            for student, relationship_type, class_name in rows
        ]
    }

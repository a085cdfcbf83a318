from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Principal, get_current_user
from ..core.database import get_db
from ..core.exceptions import PermissionDenied
from ..schemas.communication import MessageCreate
from ..services.message_service import MessageService, format_message
from ..utils.pagination import PaginationParams, Paginator

router = APIRouter(prefix="/api/messages", tags=["Messages"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(payload: MessageCreate, principal: Principal = Depends(get_current_user),
                       db: AsyncSession = Depends(get_db)):
    message = await MessageService(db).send(principal.user, payload.model_dump())
    return {"id": str(message.id), "message": "Message sent successfully", "data": format_message(message)}


@router.get("/user/{user_id}")
async def user_messages(
    user_id: UUID,
    type: str = Query("received", pattern="^(sent|received)$"),
    pagination: PaginationParams = Depends(Paginator.get_pagination_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if user_id != principal.id and not principal.is_super_admin:
        raise PermissionDenied("You can only view your own messages")
    items, total = await MessageService(db).mailbox(user_id, type, pagination.page, pagination.limit)
    return Paginator.create_response([format_message(m) for m in items], pagination.page, pagination.limit, total)


@router.patch("/{message_id}/read")
async def mark_message_read(message_id: UUID, principal: Principal = Depends(get_current_user),
                            db: AsyncSession = Depends(get_db)):
    message = await MessageService(db).mark_read(message_id, principal.id)
    return {"message": "Message marked as read", "data": format_message(message)}

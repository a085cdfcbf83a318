from typing import Any, Dict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .notification_service import NotificationService
from ..core.exceptions import NotFoundError, PermissionDenied
from ..core.security import utcnow
from ..models.user import User
from ..models.tenant_specific.communication import Message
from ..utils.formatting import iso


class MessageService(BaseService[Message]):
    resource_name = "Message"

    def __init__(self, db: AsyncSession):
        super().__init__(Message, db)

    async def send(self, sender: User, data: Dict[str, Any]) -> Message:
        recipient = await self.db.get(User, data["recipient_id"])
        if recipient is None or not recipient.is_active or recipient.is_deleted:
            raise NotFoundError("Recipient")
        message = Message(sender_id=sender.id, **data)
        self.db.add(message)
        await self.db.flush()
        NotificationService(self.db).notify(
            recipient.id,
            f"New message from {sender.full_name}",
            data.get("subject") or data["content"][:100],
            "message",
            {"message_id": str(message.id)},
        )
        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def mailbox(self, user_id: UUID, box: str, page: int, limit: int):
        column = Message.sender_id if box == "sent" else Message.recipient_id
        stmt = self.base_query().where(column == user_id).order_by(Message.created_at.desc())
        return await self.paginate(stmt, page, limit)

    async def mark_read(self, message_id: UUID, user_id: UUID) -> Message:
        message = await self.get_or_404(message_id)
        if message.recipient_id != user_id:
            raise PermissionDenied("Only the recipient can mark a message as read")
        if not message.is_read:
            message.is_read = True
            message.read_at = utcnow()
            await self.db.commit()
            await self.db.refresh(message)
        return message


def format_message(m: Message) -> dict:
    return {
        "id": str(m.id),
        "sender_id": str(m.sender_id),
        "recipient_id": str(m.recipient_id),
        "subject": m.subject,
        "content": m.content,
        "message_type": m.message_type,
        "is_read": m.is_read,
        "read_at": iso(m.read_at),
        "created_at": iso(m.created_at),
    }

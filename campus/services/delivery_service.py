"""Outbound email and SMS for codes and links."""
from email.message import EmailMessage
import logging

import aiosmtplib
import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    pass


class DeliveryService:
    async def send_email(self, to: str, subject: str, body: str) -> bool:
        if not settings.smtp_host:
            logger.info(f"SMTP not configured, email to {to} not sent: {subject}")
            return False
        message = EmailMessage()
        message["From"] = settings.mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                start_tls=settings.smtp_use_tls,
            )
        except aiosmtplib.SMTPException as e:
            raise DeliveryError(f"Email delivery to {to} failed: {e}") from e
        logger.info(f"Email sent to {to}: {subject}")
        return True

    async def send_sms(self, to: str, body: str) -> bool:
        if not settings.sms_gateway_url:
            logger.info(f"SMS gateway not configured, SMS to {to} not sent")
            return False
        headers = {"Authorization": f"Bearer {settings.sms_api_key}"} if settings.sms_api_key else {}
        payload = {"to": to, "from": settings.sms_sender_id, "message": body}
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(settings.sms_gateway_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"SMS delivery to {to} failed: {e}") from e
        logger.info(f"SMS sent to {to}")
        return True

    async def send(self, channel: str, destination: str, subject: str, body: str) -> bool:
        if channel == "sms":
            return await self.send_sms(destination, body)
        return await self.send_email(destination, subject, body)


async def dispatch(channel: str, destination: str, subject: str, body: str):
    """Queue a message on the worker, or send it inline when queuing is off."""
    if settings.async_delivery:
        from ..tasks import deliver_message
        deliver_message.delay(channel, destination, subject, body)
        logger.info(f"Queued {channel} delivery to {destination}")
        return
    try:
        await DeliveryService().send(channel, destination, subject, body)
    except DeliveryError as e:
        logger.error(str(e))

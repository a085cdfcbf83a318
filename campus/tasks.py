"""Background jobs run by the Celery worker."""
import asyncio
import logging

from .celery_worker import celery_app
from .services.delivery_service import DeliveryService, DeliveryError

logger = logging.getLogger(__name__)


@celery_app.task(name="campus.deliver_message", bind=True, max_retries=3, default_retry_delay=30)
def deliver_message(self, channel: str, destination: str, subject: str, body: str):
    try:
        return asyncio.run(DeliveryService().send(channel, destination, subject, body))
    except DeliveryError as exc:
        logger.warning(f"Delivery attempt {self.request.retries + 1} failed: {exc}")
        raise self.retry(exc=exc)

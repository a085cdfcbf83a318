from celery import Celery

from .core.config import settings

celery_app = Celery(
    "campus",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["campus.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)

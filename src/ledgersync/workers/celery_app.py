from celery import Celery

from ledgersync.config import settings

celery_app = Celery(
    "ledgersync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["ledgersync.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

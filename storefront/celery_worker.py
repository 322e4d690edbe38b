"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.
"""

from celery import Celery

from storefront.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'storefront_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['storefront.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # One e-mail at a time per worker process
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    result_expires=3600,

    # Acknowledge after completion; requeue if the worker dies mid-send
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()

"""
Celery Tasks
Background jobs for order confirmation e-mail.
"""

import asyncio
import logging
import time
from datetime import datetime

from storefront.celery_worker import celery_app
from storefront.core.config import get_settings
from storefront.core.exceptions import NotificationError
from storefront.services.notifications import OrderConfirmation, get_notification_service

logger = logging.getLogger(__name__)


def first_name_of(full_name: str) -> str:
    """First word of the shipping full name, 'Customer' when there is none."""
    parts = (full_name or "").split()
    return parts[0] if parts else "Customer"


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(NotificationError,),
    retry_backoff=True
)
def send_order_confirmation_email(self, order_data: dict) -> dict:
    """
    Render and send the confirmation e-mail for one order.

    Args:
        order_data: ``order_id``, ``email``, ``customer_name``, ``order_total``

    Returns:
        dict: The notification result plus task timing
    """
    task_id = self.request.id
    order_id = order_data.get('order_id', 'unknown')

    logger.info(f"Task {task_id}: Sending confirmation for order {order_id}")
    start_time = time.time()

    confirmation = OrderConfirmation(
        order_id=order_id,
        email=order_data['email'],
        first_name=first_name_of(order_data.get('customer_name')),
        total_amount=f"{float(order_data.get('order_total') or 0):.2f}",
    )

    service = get_notification_service()
    result = asyncio.run(
        service.send_order_confirmation(confirmation, get_settings().restaurant_name)
    )

    elapsed = round(time.time() - start_time, 3)
    if not result.success:
        logger.warning(f"Task {task_id}: Order {order_id} e-mail failed after {elapsed}s - {result.error_message}")
        # autoretry_for picks this up
        raise NotificationError(result.error_message)

    logger.info(f"Task {task_id}: Order {order_id} e-mail sent in {elapsed}s")
    return {
        'success': True,
        'order_id': order_id,
        'message_id': result.message_id,
        'provider': result.provider,
        'task_id': task_id,
        'processing_time_seconds': elapsed,
    }


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }

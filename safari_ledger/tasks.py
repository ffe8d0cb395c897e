"""Celery background tasks.

This module contains background tasks for:
- Notification delivery
- Abandoning stale payment attempts
"""

import asyncio
import logging
from datetime import timedelta

from celery import shared_task
from sqlalchemy import update

from safari_ledger.database import get_db_context
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.models.payment import Payment
from safari_ledger.services.notification_service import notification_service
from safari_ledger.utils.dates import utcnow
from safari_ledger.worker import celery_app  # noqa: F401

logger = logging.getLogger(__name__)

STALE_PAYMENT_AGE = timedelta(hours=24)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


# ==================== NOTIFICATION TASKS ====================


@shared_task(bind=True, max_retries=3)
def dispatch_notification(self, notification_type: str, payload: dict):
    """Deliver a ledger event to the notification service."""
    try:
        delivered = run_async(_deliver(notification_type, payload))
        return {"status": "delivered" if delivered else "skipped", "type": notification_type}
    except Exception as exc:
        logger.warning(f"Notification {notification_type} failed: {exc}")
        self.retry(exc=exc, countdown=60)


async def _deliver(notification_type: str, payload: dict) -> bool:
    try:
        return await notification_service.deliver(notification_type, payload)
    finally:
        await notification_service.close()


# ==================== MAINTENANCE TASKS ====================


@shared_task(bind=True, max_retries=3)
def abandon_stale_payments(self):
    """Mark payment attempts that never completed as ABANDONED."""
    try:
        count = run_async(_abandon_stale_payments())
        return {"status": "success", "abandoned": count}
    except Exception as exc:
        self.retry(exc=exc, countdown=300)


async def _abandon_stale_payments() -> int:
    cutoff = utcnow() - STALE_PAYMENT_AGE
    async with get_db_context() as db:
        result = await db.execute(
            update(Payment)
            .where(
                Payment.status.in_((PaymentStatus.PENDING, PaymentStatus.PROCESSING)),
                Payment.initiated_at < cutoff,
            )
            .values(status=PaymentStatus.ABANDONED, status_message="Abandoned after 24 hours")
        )
        count = result.rowcount or 0
    if count:
        logger.info(f"Abandoned {count} stale payment attempts")
    return count

"""Notification hand-off.

Ledger operations only announce events; delivery channels (email, SMS,
push) belong to a separate service reached through a webhook. Nothing here
may fail a financial operation: enqueue errors are logged and dropped.
"""

import logging
from typing import Any

import httpx

from safari_ledger.config import settings

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for publishing ledger events to the notification pipeline."""

    # Notification types
    BOOKING_CREATED = "booking_created"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_RECEIVED = "payment_received"
    WITHDRAWAL_REQUESTED = "withdrawal_requested"
    WITHDRAWAL_APPROVED = "withdrawal_approved"
    WITHDRAWAL_PROCESSING = "withdrawal_processing"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    WITHDRAWAL_REJECTED = "withdrawal_rejected"

    def __init__(self) -> None:
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def enqueue(self, notification_type: str, payload: dict[str, Any]) -> None:
        """Queue a notification for the Celery worker.

        Scheduled through FastAPI BackgroundTasks so it runs after the
        request transaction has committed.
        """
        from safari_ledger.tasks import dispatch_notification

        try:
            dispatch_notification.delay(notification_type, payload)
        except Exception as e:
            logger.warning(f"Failed to enqueue {notification_type} notification: {e}")

    async def deliver(self, notification_type: str, payload: dict[str, Any]) -> bool:
        """POST the event to the configured notification webhook.

        Returns:
            True if delivered, False if no webhook is configured
        """
        if not settings.notification_webhook_url:
            logger.debug(f"No notification webhook configured; dropping {notification_type}")
            return False

        response = await self.http_client.post(
            settings.notification_webhook_url,
            json={"type": notification_type, "data": payload},
        )
        response.raise_for_status()
        logger.info(f"Delivered {notification_type} notification")
        return True


# Singleton instance
notification_service = NotificationService()

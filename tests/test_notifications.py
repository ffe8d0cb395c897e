"""Tests for the notification hand-off."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from safari_ledger.services.notification_service import NotificationService, notification_service
from safari_ledger.tasks import dispatch_notification


async def test_deliver_without_webhook_is_skipped():
    service = NotificationService()

    with patch("safari_ledger.services.notification_service.settings") as settings:
        settings.notification_webhook_url = None
        delivered = await service.deliver(NotificationService.PAYMENT_RECEIVED, {"booking_id": "b1"})

    assert delivered is False


async def test_deliver_posts_typed_event():
    service = NotificationService()
    response = httpx.Response(202, request=httpx.Request("POST", "https://notify.internal/events"))
    service._http_client = MagicMock(post=AsyncMock(return_value=response))

    with patch("safari_ledger.services.notification_service.settings") as settings:
        settings.notification_webhook_url = "https://notify.internal/events"
        delivered = await service.deliver(NotificationService.WITHDRAWAL_APPROVED, {"withdrawal_id": "w1"})

    assert delivered is True
    service._http_client.post.assert_awaited_once_with(
        "https://notify.internal/events",
        json={"type": "withdrawal_approved", "data": {"withdrawal_id": "w1"}},
    )


async def test_deliver_raises_on_http_error():
    service = NotificationService()
    response = httpx.Response(503, request=httpx.Request("POST", "https://notify.internal/events"))
    service._http_client = MagicMock(post=AsyncMock(return_value=response))

    with patch("safari_ledger.services.notification_service.settings") as settings:
        settings.notification_webhook_url = "https://notify.internal/events"
        with pytest.raises(httpx.HTTPStatusError):
            await service.deliver(NotificationService.BOOKING_CREATED, {})


def test_enqueue_never_raises():
    service = NotificationService()

    with patch("safari_ledger.tasks.dispatch_notification") as task:
        task.delay.side_effect = ConnectionError("broker down")
        service.enqueue(NotificationService.BOOKING_CREATED, {"booking_id": "b1"})

    task.delay.assert_called_once_with("booking_created", {"booking_id": "b1"})


def test_dispatch_task_reports_skipped_delivery():
    with patch.object(notification_service, "deliver", AsyncMock(return_value=False)) as deliver:
        result = dispatch_notification.apply(args=("booking_created", {"booking_id": "b1"})).get()

    assert result == {"status": "skipped", "type": "booking_created"}
    deliver.assert_awaited_once_with("booking_created", {"booking_id": "b1"})

"""Webhook endpoints for payment gateways.

Both gateways are normalized to a GatewayEvent and applied the same way.
Integrity failures are rolled back and then recorded in the audit log in
their own transaction.
"""

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_db
from safari_ledger.core.exceptions import (
    AmountMismatch,
    AppException,
    AuthenticationError,
    DuplicateSettlement,
    TerminalStateSettlement,
)
from safari_ledger.gateways.base import GatewayEvent, GatewayType
from safari_ledger.models.admin import AuditAction
from safari_ledger.services.audit_service import audit_service
from safari_ledger.services.gateway_service import gateway_service
from safari_ledger.services.notification_service import notification_service
from safari_ledger.services.payment_service import payment_service
from safari_ledger.services.settlement_service import settlement_service

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_payload(request: Request) -> dict[str, Any]:
    payload: dict[str, Any] = dict(request.query_params)
    body = await request.body()
    if body:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
        if isinstance(data, dict):
            payload.update(data)
    return payload


async def _process_event(
    db: AsyncSession,
    event: GatewayEvent,
    background_tasks: BackgroundTasks,
) -> dict:
    """Apply a gateway event and map the outcome to a webhook response."""
    try:
        outcome = await payment_service.handle_gateway_event(db, event)
    except AmountMismatch as e:
        await db.rollback()
        await audit_service.record_integrity_failure(
            db,
            AuditAction.PAYMENT_AMOUNT_MISMATCH,
            UUID(e.booking_id),
            {
                "gateway": event.gateway.value,
                "merchant_reference": event.merchant_reference,
                "transaction_id": event.transaction_id,
                "expected": e.expected,
                "received": e.received,
            },
        )
        raise
    except TerminalStateSettlement as e:
        await db.rollback()
        await audit_service.record_integrity_failure(
            db,
            AuditAction.PAYMENT_TERMINAL_STATE,
            UUID(e.booking_id),
            {
                "gateway": event.gateway.value,
                "merchant_reference": event.merchant_reference,
                "transaction_id": event.transaction_id,
                "amount": event.amount,
                "booking_status": e.booking_status,
                "action_required": "refund",
            },
        )
        return {"status": "rejected", "reason": e.detail}
    except DuplicateSettlement as e:
        await db.rollback()
        await settlement_service.flag_duplicate_capture(db, e)
        await audit_service.record_integrity_failure(
            db,
            AuditAction.PAYMENT_DUPLICATE_CAPTURE,
            UUID(e.booking_id),
            {
                "gateway": event.gateway.value,
                "merchant_reference": event.merchant_reference,
                "transaction_id": event.transaction_id,
                "payment_id": e.payment_id,
                "amount": e.amount,
                "action_required": "refund",
            },
        )
        return {"status": "rejected", "reason": e.detail}
    except AppException:
        raise
    except Exception as e:
        logger.exception(f"Error processing {event.gateway.value} webhook {event.merchant_reference}")
        await db.rollback()
        await audit_service.record_integrity_failure(
            db,
            AuditAction.WEBHOOK_ERROR,
            None,
            {
                "gateway": event.gateway.value,
                "merchant_reference": event.merchant_reference,
                "error": str(e),
            },
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )

    await db.commit()

    if outcome.status == "settled":
        booking = outcome.settlement.booking
        background_tasks.add_task(
            notification_service.enqueue,
            notification_service.PAYMENT_RECEIVED,
            {
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "user_id": str(booking.user_id),
                "agent_id": str(booking.agent_id),
                "amount": str(booking.total_amount),
                "currency": booking.currency,
            },
        )

    return {"status": outcome.status}


@router.post("/pesapal", status_code=status.HTTP_200_OK)
async def pesapal_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Handle Pesapal IPN notifications."""
    payload = await _read_payload(request)
    event = await gateway_service.parse_webhook(GatewayType.PESAPAL, payload)
    if event is None:
        logger.info(f"Ignoring Pesapal IPN without resolvable transaction: {payload}")
        return {"status": "ignored"}

    response = await _process_event(db, event, background_tasks)
    return {
        **response,
        "orderNotificationType": payload.get("OrderNotificationType", "IPNCHANGE"),
        "orderTrackingId": payload.get("OrderTrackingId"),
        "orderMerchantReference": payload.get("OrderMerchantReference"),
    }


@router.post("/flutterwave", status_code=status.HTTP_200_OK)
async def flutterwave_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Annotated[AsyncSession, Depends(get_db)],
    verif_hash: str | None = Header(None, alias="verif-hash"),
) -> dict:
    """Handle Flutterwave charge webhooks."""
    if not verif_hash:
        raise AuthenticationError("Missing webhook signature")

    payload = await _read_payload(request)
    event = await gateway_service.parse_webhook(GatewayType.FLUTTERWAVE, payload, verif_hash)
    if event is None:
        logger.warning("Flutterwave webhook rejected or not a charge event")
        return {"status": "ignored"}

    return await _process_event(db, event, background_tasks)

"""Payment initiation and gateway event handling."""

import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.config import settings
from safari_ledger.core.exceptions import AuthorizationError, PaymentError, ValidationError
from safari_ledger.domain.booking_state import TERMINAL_STATES, BookingStatus, apply_booking_transition, can_transition
from safari_ledger.domain.gateway_routing import gateway_payment_methods, select_gateway
from safari_ledger.domain.payment_state import PaymentMethod, PaymentStatus
from safari_ledger.gateways.base import GatewayEvent, GatewayPaymentState, PaymentResult
from safari_ledger.models.admin import AuditAction
from safari_ledger.models.payment import Payment
from safari_ledger.models.user import User
from safari_ledger.services.audit_service import audit_service
from safari_ledger.services.booking_service import booking_service
from safari_ledger.services.gateway_service import gateway_service
from safari_ledger.services.settlement_service import SettlementResult, settlement_service
from safari_ledger.utils.booking_number import generate_merchant_reference
from safari_ledger.utils.dates import ensure_aware, utcnow

logger = logging.getLogger(__name__)

# A newer attempt is refused while an earlier one may still complete
PAYMENT_IN_PROGRESS_WINDOW = timedelta(minutes=30)
OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)


@dataclass
class GatewayEventOutcome:
    status: str
    booking_id: UUID | None = None
    settlement: SettlementResult | None = None


class PaymentService:
    """Service for starting payments and applying gateway notifications."""

    async def initiate_payment(
        self,
        db: AsyncSession,
        booking_id: UUID,
        method: PaymentMethod,
        user: User,
        phone_number: str | None = None,
    ) -> tuple[Payment, PaymentResult]:
        """Open a payment attempt with the routed gateway.

        Raises:
            AuthorizationError: Caller is not the booking's customer
            ValidationError: Booking paid, terminal, or a payment already in flight
            PaymentError: Gateway refused the order
        """
        booking = await booking_service.get_booking(db, booking_id)
        if booking.user_id != user.id:
            raise AuthorizationError("Only the customer who made the booking can pay for it")
        if booking.payment_status == PaymentStatus.COMPLETED:
            raise ValidationError("Booking is already paid")
        if booking.status in TERMINAL_STATES:
            raise ValidationError(f"Cannot pay for a {booking.status.value.lower()} booking")

        now = utcnow()
        result = await db.execute(
            select(Payment).where(
                Payment.booking_id == booking.id,
                Payment.status.in_(OPEN_PAYMENT_STATUSES),
            )
        )
        for existing in result.scalars().all():
            if ensure_aware(existing.initiated_at) > now - PAYMENT_IN_PROGRESS_WINDOW:
                raise ValidationError("A payment is already in progress for this booking")
            existing.status = PaymentStatus.ABANDONED
            existing.status_message = "Superseded by a new payment attempt"

        method_key = method.value.lower()
        gateway_type = select_gateway(method_key, booking.currency)
        if method_key not in gateway_payment_methods(gateway_type):
            raise ValidationError(f"{method.value} payments are not supported for {booking.currency}")

        payment = Payment(
            booking_id=booking.id,
            user_id=user.id,
            amount=booking.total_amount,
            currency=booking.currency,
            method=method,
            gateway=gateway_type.value,
            merchant_reference=generate_merchant_reference(booking.booking_reference),
            status=PaymentStatus.PENDING,
            initiated_at=now,
        )
        db.add(payment)
        await db.flush()

        gateway_result = await gateway_service.create_payment(
            gateway_type=gateway_type,
            amount=booking.total_amount,
            currency=booking.currency,
            reference_id=payment.merchant_reference,
            description=f"Booking {booking.booking_reference}",
            customer={
                "email": booking.contact_email,
                "name": booking.contact_name,
                "phone": phone_number or booking.contact_phone,
                "callback_url": f"{settings.app_url}/bookings/{booking.id}/confirmation",
            },
        )
        if not gateway_result.success:
            logger.warning(
                f"{gateway_type.value} refused payment {payment.merchant_reference}: {gateway_result.error_message}"
            )
            raise PaymentError(gateway_result.error_message or "Payment could not be started")

        payment.status = PaymentStatus.PROCESSING
        payment.gateway_transaction_id = gateway_result.transaction_id
        payment.gateway_response = gateway_result.raw_response

        logger.info(f"Payment {payment.merchant_reference} started via {gateway_type.value}")
        return payment, gateway_result

    async def get_payment_by_reference(self, db: AsyncSession, merchant_reference: str) -> Payment | None:
        result = await db.execute(
            select(Payment).where(Payment.merchant_reference == merchant_reference)
        )
        return result.scalar_one_or_none()

    async def handle_gateway_event(self, db: AsyncSession, event: GatewayEvent) -> GatewayEventOutcome:
        """Apply a verified gateway notification.

        Raises:
            AmountMismatch: Settlement amount disagrees with the booking
            TerminalStateSettlement: Payment arrived for a cancelled/refunded booking
        """
        payment = await self.get_payment_by_reference(db, event.merchant_reference)
        if payment is None:
            logger.warning(f"{event.gateway.value} event for unknown reference {event.merchant_reference}")
            return GatewayEventOutcome(status="ignored")

        if event.state == GatewayPaymentState.COMPLETED:
            settlement = await settlement_service.settle(
                db,
                booking_id=payment.booking_id,
                payment_amount=event.amount if event.amount is not None else payment.amount,
                external_ref=event.transaction_id,
                payment=payment,
                gateway=event.gateway.value,
                gateway_response=event.raw_payload,
            )
            return GatewayEventOutcome(
                status="already_processed" if settlement.already_settled else "settled",
                booking_id=payment.booking_id,
                settlement=settlement,
            )

        if event.state == GatewayPaymentState.FAILED:
            await settlement_service.mark_payment_failed(
                db,
                payment,
                reason=f"{event.gateway.value} reported failure",
                gateway_response=event.raw_payload,
            )
            return GatewayEventOutcome(status="failed", booking_id=payment.booking_id)

        if event.state == GatewayPaymentState.REFUNDED:
            await self.apply_gateway_refund(db, payment.booking_id)
            return GatewayEventOutcome(status="refunded", booking_id=payment.booking_id)

        return GatewayEventOutcome(status="pending", booking_id=payment.booking_id)

    async def apply_gateway_refund(self, db: AsyncSession, booking_id: UUID) -> None:
        """Move a booking to REFUNDED when the gateway reports a refund."""
        booking = await booking_service.get_booking(db, booking_id)
        if not can_transition(booking.status, BookingStatus.REFUNDED):
            logger.warning(
                f"Gateway refund for booking {booking.booking_reference} in status {booking.status.value} not applied"
            )
            return

        previous = apply_booking_transition(booking, BookingStatus.REFUNDED)
        await booking_service.mark_refunded(db, booking)
        await audit_service.log_booking_action(
            db=db,
            user_id=None,
            action=AuditAction.BOOKING_REFUNDED,
            booking_id=booking.id,
            old_values={"status": previous},
            new_values={"status": booking.status, "payment_status": booking.payment_status, "source": "gateway"},
        )


# Singleton instance
payment_service = PaymentService()

"""Payment settlement service.

Reconciles a confirmed external payment against a booking and fixes the
agent/platform split exactly once per booking.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.config import settings
from safari_ledger.core.exceptions import (
    AmountMismatch,
    BookingNotFound,
    DuplicateSettlement,
    TerminalStateSettlement,
)
from safari_ledger.domain.booking_state import (
    TERMINAL_STATES,
    BookingStatus,
    apply_booking_transition,
)
from safari_ledger.domain.payment_state import (
    PaymentMethod,
    PaymentStatus,
    assert_payment_transition,
)
from safari_ledger.domain.pricing import to_money
from safari_ledger.models.admin import AuditAction
from safari_ledger.models.agent import Agent
from safari_ledger.models.booking import Booking
from safari_ledger.models.payment import Payment
from safari_ledger.services.audit_service import audit_service
from safari_ledger.services.commission_service import commission_service
from safari_ledger.utils.booking_number import generate_merchant_reference
from safari_ledger.utils.dates import utcnow

logger = logging.getLogger(__name__)

OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)


@dataclass
class SettlementResult:
    """Outcome of a settle call. ``already_settled`` marks an idempotent replay."""

    booking: Booking
    payment: Payment | None
    already_settled: bool = False


def assert_amount_matches(booking: Booking, amount: Decimal) -> None:
    """Guard: Gateway amount must equal the booking total within tolerance."""
    if abs(amount - Decimal(booking.total_amount)) > settings.settlement_amount_tolerance:
        raise AmountMismatch(str(booking.id), Decimal(booking.total_amount), amount)


def is_replay(completed: Payment | None, payment: Payment | None, external_ref: str | None) -> bool:
    """True when a confirmation names the capture that already settled the booking."""
    if completed is None:
        return True
    if payment is not None:
        return payment.id == completed.id
    if external_ref:
        return external_ref in (completed.gateway_transaction_id, completed.merchant_reference)
    return True


class SettlementService:
    """Service for settling payments against bookings."""

    async def _completed_payment(self, db: AsyncSession, booking_id: UUID) -> Payment | None:
        result = await db.execute(
            select(Payment).where(
                Payment.booking_id == booking_id,
                Payment.status == PaymentStatus.COMPLETED,
            )
        )
        return result.scalar_one_or_none()

    async def _open_payment(
        self, db: AsyncSession, booking_id: UUID, external_ref: str | None
    ) -> Payment | None:
        """Most recent in-flight payment, preferring one matching the reference."""
        query = select(Payment).where(
            Payment.booking_id == booking_id,
            Payment.status.in_(OPEN_PAYMENT_STATUSES),
        )
        if external_ref:
            matched = await db.execute(
                query.where(
                    (Payment.gateway_transaction_id == external_ref)
                    | (Payment.merchant_reference == external_ref)
                )
            )
            payment = matched.scalars().first()
            if payment:
                return payment
        result = await db.execute(query.order_by(Payment.created_at.desc()))
        return result.scalars().first()

    async def _already_settled(
        self,
        db: AsyncSession,
        booking: Booking,
        payment: Payment | None,
        external_ref: str | None,
        amount: Decimal,
    ) -> SettlementResult:
        completed = await self._completed_payment(db, booking.id)
        if not is_replay(completed, payment, external_ref):
            logger.error(
                f"Booking {booking.booking_reference} already settled by payment {completed.id}; "
                f"second capture ref={external_ref} payment={payment.id if payment else None}"
            )
            raise DuplicateSettlement(
                str(booking.id), str(payment.id) if payment else None, external_ref, to_money(amount)
            )
        logger.info(f"Booking {booking.booking_reference} already settled; ignoring duplicate confirmation")
        return SettlementResult(booking, completed, already_settled=True)

    async def settle(
        self,
        db: AsyncSession,
        booking_id: UUID,
        payment_amount: Decimal,
        external_ref: str | None,
        payment: Payment | None = None,
        gateway: str | None = None,
        method: PaymentMethod | None = None,
        actor_id: UUID | None = None,
        gateway_response: dict[str, Any] | None = None,
    ) -> SettlementResult:
        """Settle a confirmed payment against a booking.

        Args:
            db: Database session (caller owns the transaction)
            booking_id: Booking being paid
            payment_amount: Amount the gateway confirmed
            external_ref: Gateway transaction reference
            payment: The Payment row the confirmation refers to, if known
            gateway: Gateway name for a payment row created here
            method: Payment method for a payment row created here
            actor_id: Admin settling manually, None for gateway callbacks
            gateway_response: Raw gateway payload to keep on the payment

        Returns:
            SettlementResult; ``already_settled`` is True on replays

        Raises:
            BookingNotFound: Unknown booking
            TerminalStateSettlement: Booking is CANCELLED or REFUNDED
            AmountMismatch: Amount differs from the booking total
            DuplicateSettlement: A different capture already settled the booking
        """
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).with_for_update()
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFound(str(booking_id))

        if booking.payment_status == PaymentStatus.COMPLETED:
            return await self._already_settled(db, booking, payment, external_ref, payment_amount)

        if booking.status in TERMINAL_STATES:
            logger.warning(
                f"Settlement for {booking.status.value} booking {booking.booking_reference} rejected "
                f"(ref={external_ref})"
            )
            raise TerminalStateSettlement(str(booking.id), booking.status.value)

        amount = to_money(payment_amount)
        assert_amount_matches(booking, amount)

        agent = await db.get(Agent, booking.agent_id)
        split = await commission_service.calculate_split(db, agent, Decimal(booking.total_amount))
        now = utcnow()

        # Conditional update is the concurrency guard: only one settler flips the status
        guarded = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.payment_status != PaymentStatus.COMPLETED,
            )
            .values(
                payment_status=PaymentStatus.COMPLETED,
                commission_rate=split.rate,
                platform_commission=split.platform_commission,
                agent_earnings=split.agent_earnings,
                settled_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(booking)
        if guarded.rowcount == 0:
            logger.info(f"Booking {booking.booking_reference} settled concurrently")
            return await self._already_settled(db, booking, payment, external_ref, payment_amount)

        if payment is None:
            payment = await self._open_payment(db, booking.id, external_ref)
        if payment is None:
            payment = Payment(
                booking_id=booking.id,
                user_id=booking.user_id,
                amount=amount,
                currency=booking.currency,
                method=method or PaymentMethod.BANK_TRANSFER,
                gateway=gateway or "manual",
                merchant_reference=generate_merchant_reference(booking.booking_reference),
                status=PaymentStatus.PENDING,
            )
            db.add(payment)

        assert_payment_transition(payment.status, PaymentStatus.COMPLETED)
        payment.status = PaymentStatus.COMPLETED
        payment.completed_at = now
        payment.status_message = "Payment completed"
        if external_ref:
            payment.gateway_transaction_id = external_ref
        if gateway_response is not None:
            payment.gateway_response = gateway_response

        old_status = booking.status
        if booking.status == BookingStatus.PENDING:
            apply_booking_transition(booking, BookingStatus.CONFIRMED)
        if booking.status == BookingStatus.CONFIRMED:
            apply_booking_transition(booking, BookingStatus.PAID)

        await audit_service.log_booking_action(
            db=db,
            user_id=actor_id,
            action=AuditAction.PAYMENT_COMPLETED,
            booking_id=booking.id,
            old_values={"status": old_status, "payment_status": PaymentStatus.PENDING},
            new_values={
                "status": booking.status,
                "payment_status": PaymentStatus.COMPLETED,
                "amount": amount,
                "transaction_ref": external_ref,
                "commission_rate": split.rate,
                "platform_commission": split.platform_commission,
                "agent_earnings": split.agent_earnings,
                "commission_tier_id": split.tier_id,
            },
        )
        await db.flush()

        logger.info(
            f"Settled booking {booking.booking_reference}: total={booking.total_amount} "
            f"rate={split.rate}% commission={split.platform_commission} earnings={split.agent_earnings}"
        )
        return SettlementResult(booking, payment)

    async def mark_payment_failed(
        self,
        db: AsyncSession,
        payment: Payment,
        reason: str | None = None,
        gateway_response: dict[str, Any] | None = None,
    ) -> Payment:
        """Record a failed attempt. A settled booking is left untouched."""
        if payment.status not in OPEN_PAYMENT_STATUSES:
            return payment

        assert_payment_transition(payment.status, PaymentStatus.FAILED)
        payment.status = PaymentStatus.FAILED
        payment.failed_at = utcnow()
        payment.status_message = reason or "Payment failed"
        if gateway_response is not None:
            payment.gateway_response = gateway_response

        booking = await db.get(Booking, payment.booking_id)
        if booking and booking.payment_status != PaymentStatus.COMPLETED:
            booking.payment_status = PaymentStatus.FAILED

        await audit_service.log_booking_action(
            db=db,
            user_id=None,
            action=AuditAction.PAYMENT_FAILED,
            booking_id=payment.booking_id,
            new_values={"payment_id": payment.id, "reason": payment.status_message},
        )
        return payment

    async def flag_duplicate_capture(self, db: AsyncSession, error: DuplicateSettlement) -> Payment | None:
        """Close out a payment captured after its booking was already settled.

        Runs after the failed settlement was rolled back. The payment is taken
        out of the open set and marked for refund; the caller commits.
        """
        if error.payment_id is None:
            return None
        payment = await db.get(Payment, UUID(error.payment_id))
        if payment is None or payment.status == PaymentStatus.COMPLETED:
            return payment

        if payment.status in OPEN_PAYMENT_STATUSES:
            assert_payment_transition(payment.status, PaymentStatus.ABANDONED)
            payment.status = PaymentStatus.ABANDONED
        if error.external_ref:
            payment.gateway_transaction_id = error.external_ref
        payment.status_message = "Captured after the booking was settled by another payment; refund required"
        return payment


# Singleton instance
settlement_service = SettlementService()

"""Tests for settlement: idempotence, conservation and integrity guards."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from safari_ledger.core.exceptions import (
    AmountMismatch,
    BookingNotFound,
    DuplicateSettlement,
    TerminalStateSettlement,
)
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentMethod, PaymentStatus
from safari_ledger.models.admin import AuditAction, AuditLog
from safari_ledger.models.booking import Booking
from safari_ledger.models.payment import Payment
from safari_ledger.services.settlement_service import settlement_service
from tests.factories import create_booking, create_tier


async def test_settle_marks_booking_paid_and_splits(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))

    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("1000.00"), external_ref="TX-1"
    )
    await db.commit()

    assert result.already_settled is False
    assert result.booking.status == BookingStatus.PAID
    assert result.booking.payment_status == PaymentStatus.COMPLETED
    assert result.booking.commission_rate == Decimal("15.00")
    assert result.booking.platform_commission == Decimal("150.00")
    assert result.booking.agent_earnings == Decimal("850.00")
    assert result.payment.status == PaymentStatus.COMPLETED
    assert result.payment.gateway == "manual"


async def test_tier_overrides_flat_rate(db, tour, customer):
    await create_tier(db, "Preferred", Decimal("12.00"))
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))

    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("1000.00"), external_ref="TX-2"
    )

    assert result.booking.commission_rate == Decimal("12.00")
    assert result.booking.platform_commission == Decimal("120.00")
    assert result.booking.agent_earnings == Decimal("880.00")


async def test_settle_twice_is_idempotent(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("333.33"))

    first = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("333.33"), external_ref="TX-3"
    )
    await db.commit()
    second = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("333.33"), external_ref="TX-3"
    )
    await db.commit()

    assert second.already_settled is True
    assert second.booking.agent_earnings == first.booking.agent_earnings
    assert second.payment.id == first.payment.id

    completed = await db.execute(
        select(func.count(Payment.id)).where(
            Payment.booking_id == booking.id, Payment.status == PaymentStatus.COMPLETED
        )
    )
    assert completed.scalar() == 1

    audits = await db.execute(
        select(func.count(AuditLog.id)).where(
            AuditLog.resource_id == booking.id,
            AuditLog.action == AuditAction.PAYMENT_COMPLETED.value,
        )
    )
    assert audits.scalar() == 1
    assert first.booking.platform_commission + first.booking.agent_earnings == Decimal("333.33")
    await db.rollback()


async def test_amount_mismatch_leaves_booking_unsettled(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))
    booking_id = booking.id

    with pytest.raises(AmountMismatch) as exc_info:
        await settlement_service.settle(
            db, booking_id=booking_id, payment_amount=Decimal("999.00"), external_ref="TX-4"
        )
    await db.rollback()

    assert exc_info.value.status_code == 409
    refreshed = await db.get(Booking, booking_id)
    await db.refresh(refreshed)
    assert refreshed.payment_status == PaymentStatus.PENDING
    assert refreshed.agent_earnings is None
    await db.rollback()


async def test_amount_within_tolerance_settles(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))

    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("999.99"), external_ref="TX-5"
    )

    assert result.booking.payment_status == PaymentStatus.COMPLETED


async def test_cancelled_booking_rejects_late_payment(db, tour, customer):
    booking = await create_booking(
        db, tour, customer, total_amount=Decimal("1000.00"), status=BookingStatus.CANCELLED
    )
    booking_id = booking.id

    with pytest.raises(TerminalStateSettlement):
        await settlement_service.settle(
            db, booking_id=booking_id, payment_amount=Decimal("1000.00"), external_ref="TX-6"
        )
    await db.rollback()

    refreshed = await db.get(Booking, booking_id)
    await db.refresh(refreshed)
    assert refreshed.status == BookingStatus.CANCELLED
    assert refreshed.payment_status == PaymentStatus.PENDING
    await db.rollback()


async def test_unknown_booking(db):
    with pytest.raises(BookingNotFound):
        await settlement_service.settle(
            db, booking_id=uuid4(), payment_amount=Decimal("10.00"), external_ref=None
        )
    await db.rollback()


async def test_settle_uses_open_gateway_payment(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("500.00"))
    payment = Payment(
        booking_id=booking.id,
        user_id=customer.id,
        amount=Decimal("500.00"),
        currency="USD",
        method=PaymentMethod.CARD,
        gateway="flutterwave",
        merchant_reference=f"{booking.booking_reference}-TEST",
        status=PaymentStatus.PROCESSING,
    )
    db.add(payment)
    await db.commit()

    result = await settlement_service.settle(
        db,
        booking_id=booking.id,
        payment_amount=Decimal("500.00"),
        external_ref="FLW-99",
        payment=payment,
    )

    assert result.payment.id == payment.id
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.gateway_transaction_id == "FLW-99"


async def test_failed_payment_does_not_touch_settled_booking(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("200.00"))
    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("200.00"), external_ref="TX-7"
    )
    late = Payment(
        booking_id=booking.id,
        user_id=customer.id,
        amount=Decimal("200.00"),
        currency="USD",
        method=PaymentMethod.CARD,
        gateway="flutterwave",
        merchant_reference=f"{booking.booking_reference}-LATE",
        status=PaymentStatus.PENDING,
    )
    db.add(late)
    await db.flush()

    await settlement_service.mark_payment_failed(db, late, reason="Card declined")

    assert late.status == PaymentStatus.FAILED
    assert result.booking.payment_status == PaymentStatus.COMPLETED


def _gateway_payment(booking, customer, suffix, status=PaymentStatus.PROCESSING):
    return Payment(
        booking_id=booking.id,
        user_id=customer.id,
        amount=booking.total_amount,
        currency="USD",
        method=PaymentMethod.CARD,
        gateway="flutterwave",
        merchant_reference=f"{booking.booking_reference}-{suffix}",
        status=status,
    )


async def test_second_capture_is_flagged_for_refund(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))
    first = _gateway_payment(booking, customer, "A")
    second = _gateway_payment(booking, customer, "B")
    db.add_all([first, second])
    await db.commit()
    booking_id, second_id = booking.id, second.id

    settled = await settlement_service.settle(
        db, booking_id=booking_id, payment_amount=Decimal("1000.00"), external_ref="FLW-A", payment=first
    )
    await db.commit()
    replay = await settlement_service.settle(
        db, booking_id=booking_id, payment_amount=Decimal("1000.00"), external_ref="FLW-A", payment=first
    )
    await db.commit()

    assert settled.already_settled is False
    assert replay.already_settled is True
    assert replay.payment.id == first.id

    with pytest.raises(DuplicateSettlement) as exc_info:
        await settlement_service.settle(
            db, booking_id=booking_id, payment_amount=Decimal("1000.00"), external_ref="FLW-B", payment=second
        )
    await db.rollback()

    assert exc_info.value.status_code == 409
    assert exc_info.value.payment_id == str(second_id)
    assert exc_info.value.external_ref == "FLW-B"

    flagged = await settlement_service.flag_duplicate_capture(db, exc_info.value)
    await db.commit()

    assert flagged.id == second_id
    assert flagged.status == PaymentStatus.ABANDONED
    assert flagged.gateway_transaction_id == "FLW-B"
    assert "refund required" in flagged.status_message

    booking = await db.get(Booking, booking_id)
    await db.refresh(booking)
    assert booking.agent_earnings == Decimal("850.00")
    await db.commit()


async def test_manual_settlement_with_new_reference_is_duplicate(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("400.00"))
    booking_id = booking.id

    await settlement_service.settle(
        db, booking_id=booking_id, payment_amount=Decimal("400.00"), external_ref="BANK-1"
    )
    await db.commit()

    with pytest.raises(DuplicateSettlement) as exc_info:
        await settlement_service.settle(
            db, booking_id=booking_id, payment_amount=Decimal("400.00"), external_ref="BANK-2"
        )
    await db.rollback()

    assert exc_info.value.payment_id is None
    assert await settlement_service.flag_duplicate_capture(db, exc_info.value) is None


async def test_late_capture_settles_the_abandoned_attempt(db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))
    stale = _gateway_payment(booking, customer, "OLD", status=PaymentStatus.ABANDONED)
    fresh = _gateway_payment(booking, customer, "NEW")
    db.add_all([stale, fresh])
    await db.commit()

    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("1000.00"), external_ref="FLW-OLD", payment=stale
    )
    await db.commit()

    assert result.payment.id == stale.id
    assert stale.status == PaymentStatus.COMPLETED
    assert stale.gateway_transaction_id == "FLW-OLD"
    assert fresh.status == PaymentStatus.PROCESSING
    assert fresh.gateway_transaction_id is None


async def test_concurrent_settlements_split_once(session_maker, db, tour, customer):
    booking = await create_booking(db, tour, customer, total_amount=Decimal("1000.00"))
    booking_id = booking.id

    async def attempt():
        async with session_maker() as session:
            result = await settlement_service.settle(
                session, booking_id=booking_id, payment_amount=Decimal("1000.00"), external_ref="TX-RACE"
            )
            await session.commit()
            return result.already_settled

    outcomes = await asyncio.gather(*(attempt() for _ in range(4)))

    assert outcomes.count(False) == 1
    completed = await db.execute(
        select(func.count(Payment.id)).where(
            Payment.booking_id == booking_id, Payment.status == PaymentStatus.COMPLETED
        )
    )
    assert completed.scalar() == 1
    audits = await db.execute(
        select(func.count(AuditLog.id)).where(
            AuditLog.resource_id == booking_id,
            AuditLog.action == AuditAction.PAYMENT_COMPLETED.value,
        )
    )
    assert audits.scalar() == 1
    await db.commit()

"""Tests for the booking, payment and withdrawal state machines."""

from types import SimpleNamespace

import pytest

from safari_ledger.core.exceptions import InvalidTransition, InvalidWithdrawalStatus, ValidationError
from safari_ledger.domain.booking_state import (
    BOOKING_TRANSITIONS,
    TERMINAL_STATES,
    BookingStatus,
    allowed_transitions,
    apply_booking_transition,
    assert_booking_transition,
    can_transition,
)
from safari_ledger.domain.payment_state import PaymentStatus, assert_payment_transition
from safari_ledger.domain.withdrawal_state import WithdrawalStatus, assert_withdrawal_transition


def _booking(status: BookingStatus) -> SimpleNamespace:
    return SimpleNamespace(
        status=status,
        confirmed_at=None,
        completed_at=None,
        cancelled_at=None,
        cancellation_reason=None,
    )


def test_every_pair_follows_the_table():
    for current in BookingStatus:
        for target in BookingStatus:
            expected = target in BOOKING_TRANSITIONS[current]
            assert can_transition(current, target) is expected


def test_terminal_states_have_no_exits():
    assert TERMINAL_STATES == {BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    for state in TERMINAL_STATES:
        assert allowed_transitions(state) == []


def test_completed_can_only_be_refunded():
    assert allowed_transitions(BookingStatus.COMPLETED) == ["REFUNDED"]


def test_invalid_transition_reports_allowed_targets():
    with pytest.raises(InvalidTransition) as exc_info:
        assert_booking_transition(BookingStatus.PENDING, BookingStatus.COMPLETED)

    detail = exc_info.value.detail
    assert exc_info.value.status_code == 400
    assert detail["currentStatus"] == "PENDING"
    assert detail["requestedStatus"] == "COMPLETED"
    assert detail["allowedTransitions"] == ["CANCELLED", "CONFIRMED"]


def test_rejected_transition_leaves_booking_untouched():
    booking = _booking(BookingStatus.CANCELLED)

    with pytest.raises(InvalidTransition):
        apply_booking_transition(booking, BookingStatus.PAID)

    assert booking.status == BookingStatus.CANCELLED
    assert booking.confirmed_at is None


def test_apply_stamps_timestamps():
    booking = _booking(BookingStatus.PENDING)

    previous = apply_booking_transition(booking, BookingStatus.CONFIRMED)
    assert previous == BookingStatus.PENDING
    assert booking.confirmed_at is not None

    apply_booking_transition(booking, BookingStatus.CANCELLED, reason="Weather")
    assert booking.status == BookingStatus.CANCELLED
    assert booking.cancelled_at is not None
    assert booking.cancellation_reason == "Weather"


def test_payment_completed_only_moves_to_refunded():
    assert_payment_transition(PaymentStatus.COMPLETED, PaymentStatus.REFUNDED)
    with pytest.raises(ValidationError):
        assert_payment_transition(PaymentStatus.COMPLETED, PaymentStatus.FAILED)
    with pytest.raises(ValidationError):
        assert_payment_transition(PaymentStatus.REFUNDED, PaymentStatus.COMPLETED)


def test_late_capture_can_complete_a_closed_attempt():
    assert_payment_transition(PaymentStatus.ABANDONED, PaymentStatus.COMPLETED)
    assert_payment_transition(PaymentStatus.FAILED, PaymentStatus.COMPLETED)
    with pytest.raises(ValidationError):
        assert_payment_transition(PaymentStatus.ABANDONED, PaymentStatus.PROCESSING)


def test_withdrawal_transitions():
    assert_withdrawal_transition("approve", WithdrawalStatus.PENDING, WithdrawalStatus.APPROVED)
    assert_withdrawal_transition("process", WithdrawalStatus.APPROVED, WithdrawalStatus.COMPLETED)
    assert_withdrawal_transition("process", WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED)

    with pytest.raises(InvalidWithdrawalStatus) as exc_info:
        assert_withdrawal_transition("approve", WithdrawalStatus.REJECTED, WithdrawalStatus.APPROVED)
    assert exc_info.value.detail == "Cannot approve withdrawal with status: REJECTED"

    with pytest.raises(InvalidWithdrawalStatus):
        assert_withdrawal_transition("reject", WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED)

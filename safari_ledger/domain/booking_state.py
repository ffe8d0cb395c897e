"""Booking state machine.

States:
- PENDING: Booking created, awaiting agent confirmation or payment
- CONFIRMED: Agent accepted the booking
- PAID: Payment settled against the booking
- IN_PROGRESS: Tour underway
- COMPLETED: Tour finished (may still be refunded)
- CANCELLED: Terminal
- REFUNDED: Terminal
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from safari_ledger.core.exceptions import InvalidTransition

if TYPE_CHECKING:
    from safari_ledger.models.booking import Booking


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.PAID, BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}
    ),
    BookingStatus.PAID: frozenset(
        {
            BookingStatus.IN_PROGRESS,
            BookingStatus.COMPLETED,
            BookingStatus.CANCELLED,
            BookingStatus.REFUNDED,
        }
    ),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset({BookingStatus.REFUNDED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.REFUNDED: frozenset(),
}

TERMINAL_STATES = frozenset({BookingStatus.CANCELLED, BookingStatus.REFUNDED})

# Agents may drive the operational part of the lifecycle on their own bookings.
AGENT_TARGETS = frozenset(
    {
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    }
)
CUSTOMER_TARGETS = frozenset({BookingStatus.CANCELLED})


def allowed_transitions(current: BookingStatus) -> list[str]:
    """Sorted list of targets reachable from ``current``."""
    return sorted(s.value for s in BOOKING_TRANSITIONS.get(BookingStatus(current), frozenset()))


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return BookingStatus(target) in BOOKING_TRANSITIONS.get(BookingStatus(current), frozenset())


def assert_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Validate booking state transition.

    Raises:
        InvalidTransition: If target is not reachable from current
    """
    current = BookingStatus(current)
    target = BookingStatus(target)
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value, allowed_transitions(current))


def apply_booking_transition(
    booking: "Booking",
    target: BookingStatus,
    reason: str | None = None,
) -> BookingStatus:
    """Move a booking to ``target`` and stamp the matching timestamp.

    Returns the previous status. The booking is untouched when the
    transition is rejected.
    """
    previous = BookingStatus(booking.status)
    assert_booking_transition(previous, target)

    now = datetime.now(UTC)
    booking.status = BookingStatus(target)
    if target == BookingStatus.CONFIRMED:
        booking.confirmed_at = now
    elif target == BookingStatus.COMPLETED:
        booking.completed_at = now
    elif target == BookingStatus.CANCELLED:
        booking.cancelled_at = now
        booking.cancellation_reason = reason or "Cancelled"
    return previous

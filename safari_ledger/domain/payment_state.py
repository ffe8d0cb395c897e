"""Payment state machine."""

from enum import Enum

from safari_ledger.core.exceptions import ValidationError


class PaymentStatus(str, Enum):
    """Status of a payment attempt, also mirrored on the booking."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    ABANDONED = "ABANDONED"


class PaymentMethod(str, Enum):
    MPESA = "MPESA"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYPAL = "PAYPAL"


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.PROCESSING,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.ABANDONED,
    },
    PaymentStatus.PROCESSING: {
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.ABANDONED,
    },
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    # The gateway can still capture an attempt we gave up on or saw declined
    PaymentStatus.FAILED: {PaymentStatus.COMPLETED},
    PaymentStatus.REFUNDED: set(),
    PaymentStatus.ABANDONED: {PaymentStatus.COMPLETED},
}


def assert_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    allowed = PAYMENT_TRANSITIONS.get(PaymentStatus(current), set())
    if PaymentStatus(target) not in allowed:
        raise ValidationError(
            f"Invalid payment transition: {PaymentStatus(current).value} → {PaymentStatus(target).value}"
        )

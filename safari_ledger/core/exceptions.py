"""Custom application exceptions."""

from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code: str | None = None

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Any = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class BookingNotFound(NotFoundError):
    """Booking referenced by a payment or transition does not exist."""

    code = "BOOKING_NOT_FOUND"

    def __init__(self, identifier: str | None = None) -> None:
        super().__init__("Booking", identifier)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    code = "UNAUTHENTICATED"

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    code = "FORBIDDEN"

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InvalidTransition(AppException):
    """Requested status change is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: list[str]) -> None:
        self.current = current
        self.requested = requested
        self.allowed = allowed
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": f"Cannot transition from {current} to {requested}",
                "currentStatus": current,
                "requestedStatus": requested,
                "allowedTransitions": allowed,
            },
        )


class InvalidWithdrawalStatus(AppException):
    """Withdrawal is not in a status that allows the operation."""

    code = "INVALID_WITHDRAWAL_STATUS"

    def __init__(self, action: str, current: str) -> None:
        self.action = action
        self.current = current
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} withdrawal with status: {current}",
        )


class InsufficientBalance(AppException):
    """Insufficient balance for withdrawal."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(self, available: Decimal | None = None, detail: str | None = None) -> None:
        self.available = available
        if detail is None:
            detail = (
                f"Insufficient balance. Available: ${available:.2f}"
                if available is not None
                else "Insufficient balance for this operation"
            )
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AmountMismatch(AppException):
    """Gateway-reported amount does not match the booking total."""

    code = "AMOUNT_MISMATCH"

    def __init__(self, booking_id: str, expected: Decimal, received: Decimal) -> None:
        self.booking_id = booking_id
        self.expected = expected
        self.received = received
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Payment amount {received} does not match booking total {expected} "
                f"for booking {booking_id}; flagged for manual reconciliation"
            ),
        )


class TerminalStateSettlement(AppException):
    """Settlement attempted on a cancelled or refunded booking."""

    code = "TERMINAL_STATE_SETTLEMENT"

    def __init__(self, booking_id: str, booking_status: str) -> None:
        self.booking_id = booking_id
        self.booking_status = booking_status
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Booking {booking_id} is {booking_status}; payment cannot be settled",
        )


class DuplicateSettlement(AppException):
    """A second, distinct capture arrived for a booking that is already settled."""

    code = "DUPLICATE_SETTLEMENT"

    def __init__(
        self,
        booking_id: str,
        payment_id: str | None,
        external_ref: str | None,
        amount: Decimal,
    ) -> None:
        self.booking_id = booking_id
        self.payment_id = payment_id
        self.external_ref = external_ref
        self.amount = amount
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Booking {booking_id} is already settled by another payment; "
                f"capture {external_ref or payment_id} flagged for refund"
            ),
        )


class PaymentError(AppException):
    """Payment processing error."""

    code = "PAYMENT_ERROR"

    def __init__(self, detail: str = "Payment processing failed") -> None:
        super().__init__(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=detail)


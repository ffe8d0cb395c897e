"""Immutability enforcement for ledger records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from safari_ledger.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_registered = False


class ImmutabilityViolationError(ValidationError):
    """Raised when attempting to modify immutable financial records."""

    def __init__(self, model_name: str, operation: str, record_id: str):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        super().__init__(
            f"Immutability violation: Cannot {operation} {model_name} record {record_id}. "
            "Financial records are immutable after creation."
        )


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def _reject(model_name: str, operation: str, target) -> None:
    _log_immutability_violation(model_name, operation, str(target.id))
    raise ImmutabilityViolationError(model_name, operation, str(target.id))


def _persisted_status(target):
    """Status as it was loaded from the database, before pending changes."""
    history = get_history(target, "status")
    previous = history.deleted or history.unchanged
    return previous[0] if previous else None


def register_immutability_enforcement() -> None:
    """Register SQLAlchemy event listeners for immutability enforcement.

    Safe to call more than once; listeners are only attached the first time.
    """
    global _registered
    if _registered:
        return

    from safari_ledger.domain.withdrawal_state import TERMINAL_STATUSES
    from safari_ledger.models.admin import AuditLog
    from safari_ledger.models.booking import Booking
    from safari_ledger.models.promo import PromoCodeUsage
    from safari_ledger.models.withdrawal import WithdrawalRequest

    # ============ AuditLog: Append-Only ============

    @event.listens_for(AuditLog, "before_update")
    def prevent_audit_update(mapper, connection, target):
        _reject("AuditLog", "UPDATE", target)

    @event.listens_for(AuditLog, "before_delete")
    def prevent_audit_delete(mapper, connection, target):
        _reject("AuditLog", "DELETE", target)

    # ============ PromoCodeUsage: Append-Only ============

    @event.listens_for(PromoCodeUsage, "before_update")
    def prevent_usage_update(mapper, connection, target):
        _reject("PromoCodeUsage", "UPDATE", target)

    @event.listens_for(PromoCodeUsage, "before_delete")
    def prevent_usage_delete(mapper, connection, target):
        _reject("PromoCodeUsage", "DELETE", target)

    # ============ WithdrawalRequest: Terminal rows frozen ============

    @event.listens_for(WithdrawalRequest, "before_update")
    def prevent_terminal_withdrawal_update(mapper, connection, target):
        if _persisted_status(target) in TERMINAL_STATUSES:
            _reject("WithdrawalRequest", "UPDATE", target)

    @event.listens_for(WithdrawalRequest, "before_delete")
    def prevent_withdrawal_delete(mapper, connection, target):
        _reject("WithdrawalRequest", "DELETE", target)

    # ============ Booking: Never deleted ============

    @event.listens_for(Booking, "before_delete")
    def prevent_booking_delete(mapper, connection, target):
        _reject("Booking", "DELETE", target)

    _registered = True
    logger.info("Immutability enforcement registered for ledger records")

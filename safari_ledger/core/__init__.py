"""Core utilities and security modules."""

from safari_ledger.core.encryption import EncryptionService
from safari_ledger.core.exceptions import (
    AmountMismatch,
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingNotFound,
    DuplicateSettlement,
    InsufficientBalance,
    InvalidTransition,
    InvalidWithdrawalStatus,
    NotFoundError,
    PaymentError,
    TerminalStateSettlement,
    ValidationError,
)
from safari_ledger.core.security import (
    create_access_token,
    get_password_hash,
    verify_token,
)

__all__ = [
    "EncryptionService",
    "AmountMismatch",
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingNotFound",
    "DuplicateSettlement",
    "InsufficientBalance",
    "InvalidTransition",
    "InvalidWithdrawalStatus",
    "NotFoundError",
    "PaymentError",
    "TerminalStateSettlement",
    "ValidationError",
    "create_access_token",
    "get_password_hash",
    "verify_token",
]

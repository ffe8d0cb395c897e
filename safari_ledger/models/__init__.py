"""Database models."""

from safari_ledger.models.admin import AuditAction, AuditLog
from safari_ledger.models.agent import AccountStatus, Agent, CommissionTier
from safari_ledger.models.booking import Booking, BookingAccommodation, BookingActivity
from safari_ledger.models.payment import Payment
from safari_ledger.models.promo import DiscountType, PromoCode, PromoCodeUsage
from safari_ledger.models.tour import AccommodationOption, ActivityAddon, Tour, TourStatus
from safari_ledger.models.user import User, UserRole
from safari_ledger.models.withdrawal import WithdrawalRequest

__all__ = [
    # User
    "User",
    "UserRole",
    # Agent
    "Agent",
    "AccountStatus",
    "CommissionTier",
    # Tour
    "Tour",
    "TourStatus",
    "AccommodationOption",
    "ActivityAddon",
    # Booking
    "Booking",
    "BookingAccommodation",
    "BookingActivity",
    # Payment
    "Payment",
    # Promo
    "PromoCode",
    "PromoCodeUsage",
    "DiscountType",
    # Withdrawal
    "WithdrawalRequest",
    # Admin
    "AuditLog",
    "AuditAction",
]

"""Pydantic schemas for API validation."""

from safari_ledger.schemas.agent import (
    AgentCommissionUpdate,
    BalanceResponse,
    CommissionTierCreate,
    CommissionTierResponse,
    CommissionTierUpdate,
)
from safari_ledger.schemas.audit import AuditLogListResponse, AuditLogResponse
from safari_ledger.schemas.booking import (
    BookingCreate,
    BookingQuote,
    BookingResponse,
    BookingStatusUpdate,
    PriceBreakdownResponse,
)
from safari_ledger.schemas.payment import (
    ManualSettlementRequest,
    PaymentInitiate,
    PaymentInitiateResponse,
    PaymentResponse,
    SettlementResponse,
)
from safari_ledger.schemas.promo import (
    PromoCodeCreate,
    PromoCodeResponse,
    PromoValidateRequest,
    PromoValidateResponse,
)
from safari_ledger.schemas.withdrawal import (
    WithdrawalApprove,
    WithdrawalCreate,
    WithdrawalListResponse,
    WithdrawalProcess,
    WithdrawalReject,
    WithdrawalResponse,
)

__all__ = [
    # Agent
    "AgentCommissionUpdate",
    "BalanceResponse",
    "CommissionTierCreate",
    "CommissionTierResponse",
    "CommissionTierUpdate",
    # Audit
    "AuditLogListResponse",
    "AuditLogResponse",
    # Booking
    "BookingCreate",
    "BookingQuote",
    "BookingResponse",
    "BookingStatusUpdate",
    "PriceBreakdownResponse",
    # Payment
    "ManualSettlementRequest",
    "PaymentInitiate",
    "PaymentInitiateResponse",
    "PaymentResponse",
    "SettlementResponse",
    # Promo
    "PromoCodeCreate",
    "PromoCodeResponse",
    "PromoValidateRequest",
    "PromoValidateResponse",
    # Withdrawal
    "WithdrawalApprove",
    "WithdrawalCreate",
    "WithdrawalListResponse",
    "WithdrawalProcess",
    "WithdrawalReject",
    "WithdrawalResponse",
]

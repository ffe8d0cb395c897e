"""Payment-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentMethod, PaymentStatus
from safari_ledger.schemas.common import CamelModel, Money


class PaymentInitiate(CamelModel):
    """Schema for initiating a payment."""

    booking_id: UUID
    method: PaymentMethod
    phone_number: str | None = Field(None, max_length=20)  # M-Pesa prompt


class PaymentInitiateResponse(CamelModel):
    payment_id: UUID
    merchant_reference: str
    gateway: str
    redirect_url: str | None
    amount: Money
    currency: str


class PaymentMethodOption(CamelModel):
    method: str
    gateway: str


class PaymentMethodsResponse(CamelModel):
    currency: str
    methods: list[PaymentMethodOption]
    recommended_gateway: str | None = None


class PaymentResponse(CamelModel):
    """Schema for payment response."""

    id: UUID
    booking_id: UUID
    amount: Money
    currency: str
    method: PaymentMethod
    gateway: str | None
    merchant_reference: str
    gateway_transaction_id: str | None
    status: PaymentStatus
    status_message: str | None
    initiated_at: datetime
    completed_at: datetime | None
    failed_at: datetime | None


class ManualSettlementRequest(CamelModel):
    """Admin reconciliation of an off-gateway payment (e.g. bank transfer)."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_ref: str = Field(..., min_length=1, max_length=100)
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER


class SettlementResponse(CamelModel):
    booking_id: UUID
    booking_status: BookingStatus
    payment_status: PaymentStatus
    already_settled: bool
    total_amount: Money
    commission_rate: Money | None
    platform_commission: Money | None
    agent_earnings: Money | None
    payment_id: UUID | None = None

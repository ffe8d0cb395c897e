"""Agent balance and commission schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from safari_ledger.schemas.common import CamelModel, Money


class BalanceStats(CamelModel):
    completed_bookings: int
    settled_bookings: int
    withdrawal_count: int


class BalanceResponse(CamelModel):
    """Agent earnings overview."""

    total_earnings: Money
    monthly_earnings: Money
    available_balance: Money
    pending_withdrawals: Money
    total_withdrawn: Money
    pending_earnings: Money
    currency: str
    stats: BalanceStats


class CommissionTierCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    min_bookings: int = Field(default=0, ge=0)
    min_revenue: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    commission_rate: Decimal = Field(..., ge=0, le=100, max_digits=5, decimal_places=2)
    description: str | None = Field(None, max_length=1000)
    color: str | None = Field(None, max_length=20)
    is_active: bool = True


class CommissionTierUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    min_bookings: int | None = Field(None, ge=0)
    min_revenue: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    commission_rate: Decimal | None = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)
    description: str | None = Field(None, max_length=1000)
    color: str | None = Field(None, max_length=20)
    is_active: bool | None = None


class CommissionTierResponse(CamelModel):
    id: UUID
    name: str
    min_bookings: int
    min_revenue: Money | None
    commission_rate: Money
    description: str | None
    color: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AgentCommissionUpdate(CamelModel):
    commission_rate: Decimal = Field(..., ge=0, le=50, max_digits=5, decimal_places=2)


class AgentCommissionResponse(CamelModel):
    id: UUID
    business_name: str
    commission_rate: Money

"""Promo code schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from safari_ledger.models.promo import DiscountType
from safari_ledger.schemas.common import CamelModel, Money


class PromoValidateRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=20)
    tour_id: UUID
    booking_amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class PromoValidateResponse(CamelModel):
    valid: bool
    discount_amount: Money | None = None
    message: str | None = None


class PromoCodeCreate(CamelModel):
    """Schema for an agent creating a promo code."""

    code: str = Field(..., min_length=3, max_length=20)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    min_booking_amount: Decimal | None = Field(None, ge=0)
    max_discount_amount: Decimal | None = Field(None, gt=0)
    max_uses: int | None = Field(None, ge=1)
    uses_per_user: int = Field(default=1, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    tour_ids: list[UUID] = Field(default_factory=list)


class PromoCodeResponse(CamelModel):
    id: UUID
    code: str
    discount_type: DiscountType
    discount_value: Money
    min_booking_amount: Money | None
    max_discount_amount: Money | None
    max_uses: int | None
    uses_per_user: int
    valid_from: datetime | None
    valid_until: datetime | None
    tour_ids: list[str]
    is_active: bool
    usage_count: int = 0
    created_at: datetime

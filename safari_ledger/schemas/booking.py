"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.schemas.common import CamelModel, Money


class AccommodationSelection(CamelModel):
    """Accommodation option chosen for one day of the tour."""

    day_number: int = Field(..., ge=1)
    option_id: UUID


class BookingQuote(CamelModel):
    """Inputs that determine the price of a booking."""

    tour_id: UUID
    start_date: date
    end_date: date | None = None  # defaults to the tour's duration
    adults: int = Field(default=1, ge=1, le=50)
    children: int = Field(default=0, ge=0, le=50)
    accommodations: list[AccommodationSelection] = Field(default_factory=list)
    activity_ids: list[UUID] = Field(default_factory=list)
    promo_code: str | None = Field(None, max_length=20)

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v: date | None, info) -> date | None:
        start_date = info.data.get("start_date")
        if v and start_date and v < start_date:
            raise ValueError("end_date must not be before start_date")
        return v

    @field_validator("accommodations")
    @classmethod
    def validate_unique_days(cls, v: list[AccommodationSelection]) -> list[AccommodationSelection]:
        days = [a.day_number for a in v]
        if len(days) != len(set(days)):
            raise ValueError("Only one accommodation per day is allowed")
        return v


class BookingCreate(BookingQuote):
    """Schema for creating a booking."""

    contact_name: str = Field(..., min_length=1, max_length=200)
    contact_email: EmailStr
    contact_phone: str = Field(..., min_length=5, max_length=30)
    special_requests: str | None = Field(None, max_length=1000)


class PriceBreakdownResponse(CamelModel):
    """Schema for booking price breakdown."""

    base_amount: Money
    accommodation_amount: Money
    activities_amount: Money
    subtotal: Money
    tax_amount: Money
    discount_amount: Money
    total_amount: Money
    currency: str
    promo_message: str | None = None


class BookingAccommodationResponse(CamelModel):
    accommodation_option_id: UUID
    day_number: int
    price: Money


class BookingActivityResponse(CamelModel):
    activity_addon_id: UUID
    quantity: int
    price: Money


class BookingResponse(CamelModel):
    """Schema for booking response."""

    id: UUID
    booking_reference: str
    tour_id: UUID
    user_id: UUID
    agent_id: UUID

    # Dates & party
    start_date: date
    end_date: date
    adults: int
    children: int

    # Pricing
    base_amount: Money
    accommodation_amount: Money
    activities_amount: Money
    tax_amount: Money
    discount_amount: Money
    total_amount: Money
    currency: str
    accommodations: list[BookingAccommodationResponse] = []
    activities: list[BookingActivityResponse] = []

    # Settlement
    commission_rate: Money | None = None
    platform_commission: Money | None = None
    agent_earnings: Money | None = None

    # Status
    status: BookingStatus
    payment_status: PaymentStatus

    # Contact
    contact_name: str
    contact_email: str
    contact_phone: str
    special_requests: str | None = None

    cancellation_reason: str | None = None

    # Timestamps
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    settled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BookingStatusUpdate(CamelModel):
    """Schema for an agent/admin status change."""

    status: BookingStatus
    reason: str | None = Field(None, max_length=500)


class BookingCancel(CamelModel):
    reason: str | None = Field(None, max_length=500)

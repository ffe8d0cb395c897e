"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.agent import Agent
    from safari_ledger.models.payment import Payment
    from safari_ledger.models.promo import PromoCode
    from safari_ledger.models.tour import AccommodationOption, ActivityAddon, Tour
    from safari_ledger.models.user import User


class Booking(Base):
    """Booking model.

    Amounts are computed once at creation. ``agent_earnings`` and
    ``platform_commission`` are written exactly once, at settlement.
    """

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_reference: Mapped[str] = mapped_column(
        String(24), unique=True, nullable=False, index=True
    )  # SF + base36 timestamp + random
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )

    # Dates & party
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)

    # Pricing (computed once at creation)
    base_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    accommodation_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    activities_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))  # service fee
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    promo_code_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("promo_codes.id"))

    # Settlement (set once)
    commission_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))
    platform_commission: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    agent_earnings: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        SAEnum(BookingStatus, native_enum=False, length=20),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )

    # Contact
    contact_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    special_requests: Mapped[str | None] = mapped_column(Text)

    # Cancellation
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    tour: Mapped["Tour"] = relationship("Tour")
    user: Mapped["User"] = relationship("User")
    agent: Mapped["Agent"] = relationship("Agent")
    promo_code: Mapped["PromoCode | None"] = relationship("PromoCode")
    accommodations: Mapped[list["BookingAccommodation"]] = relationship(
        "BookingAccommodation",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookingAccommodation.day_number",
    )
    activities: Mapped[list["BookingActivity"]] = relationship(
        "BookingActivity", back_populates="booking", cascade="all, delete-orphan", lazy="selectin"
    )
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="booking")

    @property
    def subtotal(self) -> Decimal:
        return self.base_amount + self.accommodation_amount + self.activities_amount

    @property
    def party_size(self) -> int:
        return self.adults + self.children


class BookingAccommodation(Base):
    """Accommodation chosen for one day of the tour, priced at booking time."""

    __tablename__ = "booking_accommodations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    accommodation_option_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("accommodation_options.id"), nullable=False
    )
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="accommodations")
    accommodation_option: Mapped["AccommodationOption"] = relationship("AccommodationOption")


class BookingActivity(Base):
    """Add-on activity for the whole party, priced at booking time."""

    __tablename__ = "booking_activities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    activity_addon_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("activity_addons.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # unit price × quantity

    booking: Mapped["Booking"] = relationship("Booking", back_populates="activities")
    activity_addon: Mapped["ActivityAddon"] = relationship("ActivityAddon")

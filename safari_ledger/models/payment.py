"""Payment-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.domain.payment_state import PaymentMethod, PaymentStatus
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.booking import Booking
    from safari_ledger.models.user import User


class Payment(Base):
    """One attempt to pay for a booking through an external gateway."""

    __tablename__ = "payments"
    __table_args__ = (
        # At most one completed payment per booking
        Index(
            "uq_payments_completed_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'COMPLETED'"),
            sqlite_where=text("status = 'COMPLETED'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    # Amount
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Method & gateway
    method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(PaymentMethod, native_enum=False, length=20), nullable=False
    )
    gateway: Mapped[str | None] = mapped_column(String(30))  # pesapal, flutterwave, manual
    merchant_reference: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    gateway_transaction_id: Mapped[str | None] = mapped_column(String(100), index=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSON)
    status_message: Mapped[str | None] = mapped_column(Text)

    # Status
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Timestamps
    initiated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")
    user: Mapped["User | None"] = relationship("User")

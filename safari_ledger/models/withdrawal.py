"""Agent withdrawal models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, LargeBinary, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.domain.withdrawal_state import WithdrawalMethod, WithdrawalStatus
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.agent import Agent
    from safari_ledger.models.user import User


class WithdrawalRequest(Base):
    """Agent request to cash out earnings.

    Rows in COMPLETED or REJECTED are immutable.
    """

    __tablename__ = "withdrawal_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    method: Mapped[WithdrawalMethod] = mapped_column(
        SAEnum(WithdrawalMethod, native_enum=False, length=20), nullable=False
    )

    # Destination
    mpesa_phone: Mapped[str | None] = mapped_column(String(20))
    bank_name: Mapped[str | None] = mapped_column(String(100))
    account_number_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary)
    account_name: Mapped[str | None] = mapped_column(String(200))

    status: Mapped[WithdrawalStatus] = mapped_column(
        SAEnum(WithdrawalStatus, native_enum=False, length=20),
        nullable=False,
        default=WithdrawalStatus.PENDING,
        index=True,
    )

    # Admin processing
    processed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    transaction_ref: Mapped[str | None] = mapped_column(String(100))
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent", back_populates="withdrawals")
    processor: Mapped["User | None"] = relationship("User")

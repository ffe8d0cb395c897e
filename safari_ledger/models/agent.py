"""Agent (tour operator) and commission tier models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.tour import Tour
    from safari_ledger.models.user import User
    from safari_ledger.models.withdrawal import WithdrawalRequest


class AccountStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DEACTIVATED = "DEACTIVATED"


class Agent(Base):
    """Tour operator account.

    The row doubles as the per-agent lock for balance-affecting operations
    (withdrawal request and approval take ``SELECT ... FOR UPDATE`` on it).
    """

    __tablename__ = "agents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), unique=True, nullable=False
    )
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[AccountStatus] = mapped_column(
        SAEnum(AccountStatus, native_enum=False, length=20),
        nullable=False,
        default=AccountStatus.PENDING,
        index=True,
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("15.00")
    )  # flat platform commission %, overridden by a matching tier

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="agent")
    tours: Mapped[list["Tour"]] = relationship("Tour", back_populates="agent")
    withdrawals: Mapped[list["WithdrawalRequest"]] = relationship(
        "WithdrawalRequest", back_populates="agent"
    )


class CommissionTier(Base):
    """Volume-based override of the flat agent commission rate."""

    __tablename__ = "commission_tiers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    min_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_revenue: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    color: Mapped[str | None] = mapped_column(String(20))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

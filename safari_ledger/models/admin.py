"""Admin-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.user import User


class AuditAction(str, Enum):
    WITHDRAWAL_REQUESTED = "WITHDRAWAL_REQUESTED"
    WITHDRAWAL_APPROVED = "WITHDRAWAL_APPROVED"
    WITHDRAWAL_PROCESSING = "WITHDRAWAL_PROCESSING"
    WITHDRAWAL_COMPLETED = "WITHDRAWAL_COMPLETED"
    WITHDRAWAL_REJECTED = "WITHDRAWAL_REJECTED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_AMOUNT_MISMATCH = "PAYMENT_AMOUNT_MISMATCH"
    PAYMENT_TERMINAL_STATE = "PAYMENT_TERMINAL_STATE"
    PAYMENT_DUPLICATE_CAPTURE = "PAYMENT_DUPLICATE_CAPTURE"
    WEBHOOK_ERROR = "WEBHOOK_ERROR"
    BOOKING_STATUS_CHANGED = "BOOKING_STATUS_CHANGED"
    BOOKING_REFUNDED = "BOOKING_REFUNDED"
    COMMISSION_UPDATED = "COMMISSION_UPDATED"
    COMMISSION_TIER_CREATED = "COMMISSION_TIER_CREATED"
    COMMISSION_TIER_UPDATED = "COMMISSION_TIER_UPDATED"
    COMMISSION_TIER_DELETED = "COMMISSION_TIER_DELETED"


class AuditLog(Base):
    """Audit log for tracking financial actions. Append-only."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), index=True)

    # Action details
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Changes
    old_values: Mapped[dict | None] = mapped_column(JSON)
    new_values: Mapped[dict | None] = mapped_column(JSON)

    # Request info
    ip_address: Mapped[str | None] = mapped_column(String(45))
    user_agent: Mapped[str | None] = mapped_column(Text)

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )

    # Relationships
    user: Mapped["User | None"] = relationship("User")

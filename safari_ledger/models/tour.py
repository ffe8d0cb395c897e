"""Tour catalog models (only the fields pricing needs)."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from safari_ledger.database import Base
from safari_ledger.utils.dates import utcnow

if TYPE_CHECKING:
    from safari_ledger.models.agent import Agent


class TourStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


class Tour(Base):
    """Tour offered by an agent."""

    __tablename__ = "tours"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agents.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[TourStatus] = mapped_column(
        SAEnum(TourStatus, native_enum=False, length=20), nullable=False, default=TourStatus.DRAFT
    )
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    duration_days: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent", back_populates="tours")
    accommodation_options: Mapped[list["AccommodationOption"]] = relationship(
        "AccommodationOption", back_populates="tour", cascade="all, delete-orphan"
    )
    activity_addons: Mapped[list["ActivityAddon"]] = relationship(
        "ActivityAddon", back_populates="tour", cascade="all, delete-orphan"
    )


class AccommodationOption(Base):
    """Lodging choice for a night of the tour."""

    __tablename__ = "accommodation_options"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price_per_night: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    tour: Mapped["Tour"] = relationship("Tour", back_populates="accommodation_options")


class ActivityAddon(Base):
    """Optional activity priced per person."""

    __tablename__ = "activity_addons"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tour_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    tour: Mapped["Tour"] = relationship("Tour", back_populates="activity_addons")

"""Commission calculation service.

CRITICAL BUSINESS LOGIC:
- Every agent has a flat platform commission rate (default 15%)
- Active commission tiers override the flat rate once the agent's lifetime
  settled volume reaches the tier thresholds
- Tiers are evaluated by min_bookings then min_revenue, highest first;
  the first tier the agent qualifies for wins
- Commission is taken on the booking total and rounded to cents; the agent
  earns the remainder, so earnings + commission always equal the total
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.config import settings
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.models.agent import Agent, CommissionTier
from safari_ledger.models.booking import Booking

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CommissionSplit:
    rate: Decimal
    platform_commission: Decimal
    agent_earnings: Decimal
    tier_id: UUID | None = None


@dataclass(frozen=True)
class AgentVolume:
    settled_bookings: int
    settled_revenue: Decimal


def split_amount(total_amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    """Split a booking total into (platform_commission, agent_earnings)."""
    total_amount = Decimal(total_amount)
    commission = (total_amount * Decimal(rate) / Decimal("100")).quantize(CENTS, rounding=ROUND_HALF_UP)
    return commission, total_amount - commission


def tier_qualifies(tier: CommissionTier, volume: AgentVolume) -> bool:
    if volume.settled_bookings < tier.min_bookings:
        return False
    if tier.min_revenue is not None and volume.settled_revenue < tier.min_revenue:
        return False
    return True


def select_tier(tiers: list[CommissionTier], volume: AgentVolume) -> CommissionTier | None:
    """First qualifying tier, tiers ordered by thresholds descending."""
    ordered = sorted(
        tiers,
        key=lambda t: (t.min_bookings, t.min_revenue or Decimal("0")),
        reverse=True,
    )
    for tier in ordered:
        if tier.is_active and tier_qualifies(tier, volume):
            return tier
    return None


class CommissionService:
    """Service for calculating agent commission splits."""

    async def get_agent_volume(self, db: AsyncSession, agent_id: UUID) -> AgentVolume:
        """Lifetime settled bookings and revenue for an agent."""
        result = await db.execute(
            select(func.count(Booking.id), func.coalesce(func.sum(Booking.total_amount), 0)).where(
                Booking.agent_id == agent_id,
                Booking.payment_status == PaymentStatus.COMPLETED,
            )
        )
        count, revenue = result.one()
        return AgentVolume(settled_bookings=count or 0, settled_revenue=Decimal(str(revenue or 0)))

    async def get_effective_rate(self, db: AsyncSession, agent: Agent) -> tuple[Decimal, CommissionTier | None]:
        """Commission rate that applies to the agent's next settlement.

        Returns:
            Tuple of (rate, matched tier or None when the flat rate applies)
        """
        tiers_result = await db.execute(
            select(CommissionTier).where(CommissionTier.is_active.is_(True))
        )
        tiers = list(tiers_result.scalars().all())
        if tiers:
            volume = await self.get_agent_volume(db, agent.id)
            tier = select_tier(tiers, volume)
            if tier is not None:
                return Decimal(tier.commission_rate), tier
        if agent.commission_rate is None:
            return settings.default_agent_commission_percent, None
        return Decimal(agent.commission_rate), None

    async def calculate_split(self, db: AsyncSession, agent: Agent, total_amount: Decimal) -> CommissionSplit:
        """Compute the platform/agent split for a booking total."""
        rate, tier = await self.get_effective_rate(db, agent)
        commission, earnings = split_amount(total_amount, rate)
        if tier is not None:
            logger.info(f"Agent {agent.id} qualifies for tier '{tier.name}' at {rate}%")
        return CommissionSplit(
            rate=rate,
            platform_commission=commission,
            agent_earnings=earnings,
            tier_id=tier.id if tier else None,
        )


# Singleton instance
commission_service = CommissionService()

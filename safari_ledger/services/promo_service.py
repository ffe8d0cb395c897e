"""Promo code validation and redemption."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.core.exceptions import ValidationError
from safari_ledger.domain.pricing import to_money
from safari_ledger.models.agent import AccountStatus, Agent
from safari_ledger.models.promo import DiscountType, PromoCode, PromoCodeUsage
from safari_ledger.models.tour import Tour
from safari_ledger.utils.dates import ensure_aware, utcnow

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,20}$")
MAX_REDEMPTION_ATTEMPTS = 3
USAGE_LIMIT_MESSAGE = "This promo code has reached its usage limit"


@dataclass(frozen=True)
class PromoValidation:
    valid: bool
    discount_amount: Decimal | None = None
    message: str | None = None
    promo_code: PromoCode | None = None


def _format_value(value: Decimal) -> str:
    return format(Decimal(value).normalize(), "f")


def calculate_discount(promo: PromoCode, amount: Decimal) -> Decimal:
    """Discount for ``amount``, never above the cap nor the amount itself."""
    amount = Decimal(amount)
    value = Decimal(promo.discount_value)
    if promo.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / Decimal("100")
        if promo.max_discount_amount is not None:
            discount = min(discount, Decimal(promo.max_discount_amount))
    else:
        discount = min(value, amount)
    discount = to_money(discount)
    return min(max(discount, Decimal("0.00")), to_money(amount))


def success_message(promo: PromoCode) -> str:
    if promo.discount_type == DiscountType.PERCENTAGE:
        return f"{_format_value(promo.discount_value)}% discount applied"
    return f"${_format_value(promo.discount_value)} discount applied"


class PromoService:
    """Service for agent promo codes."""

    async def _usage_count(self, db: AsyncSession, promo_id: UUID, user_id: UUID | None = None) -> int:
        query = select(func.count(PromoCodeUsage.id)).where(PromoCodeUsage.promo_code_id == promo_id)
        if user_id is not None:
            query = query.where(PromoCodeUsage.user_id == user_id)
        result = await db.execute(query)
        return result.scalar() or 0

    async def validate_promo_code(
        self,
        db: AsyncSession,
        code: str,
        tour_id: UUID,
        booking_amount: Decimal,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> PromoValidation:
        """Check a promo code against a tour and amount. Read-only.

        Checks run in a fixed order and the first failure wins.
        """
        now = now or utcnow()
        code = (code or "").strip().upper()

        result = await db.execute(select(PromoCode).where(PromoCode.code == code))
        promo = result.scalar_one_or_none()
        if not promo:
            return PromoValidation(valid=False, message="Invalid promo code")

        if not promo.is_active:
            return PromoValidation(valid=False, message="This promo code is no longer active")

        agent = await db.get(Agent, promo.agent_id)
        if agent is None or agent.status != AccountStatus.ACTIVE:
            return PromoValidation(valid=False, message="This promo code is no longer valid")

        valid_from = ensure_aware(promo.valid_from)
        if valid_from is not None and now < valid_from:
            return PromoValidation(valid=False, message="This promo code is not yet valid")

        valid_until = ensure_aware(promo.valid_until)
        if valid_until is not None and now > valid_until:
            return PromoValidation(valid=False, message="This promo code has expired")

        tour = await db.get(Tour, tour_id)
        if tour is None:
            return PromoValidation(valid=False, message="Tour not found")
        if tour.agent_id != promo.agent_id or (
            promo.tour_ids and str(tour.id) not in {str(t) for t in promo.tour_ids}
        ):
            return PromoValidation(valid=False, message="This promo code is not valid for this tour")

        if promo.max_uses is not None:
            if await self._usage_count(db, promo.id) >= promo.max_uses:
                return PromoValidation(valid=False, message=USAGE_LIMIT_MESSAGE)

        if user_id is not None and promo.uses_per_user is not None:
            if await self._usage_count(db, promo.id, user_id) >= promo.uses_per_user:
                return PromoValidation(
                    valid=False,
                    message="You have already used this promo code the maximum number of times",
                )

        if promo.min_booking_amount is not None and Decimal(booking_amount) < promo.min_booking_amount:
            return PromoValidation(
                valid=False,
                message=f"Minimum booking amount of ${promo.min_booking_amount:.2f} required for this promo code",
            )

        return PromoValidation(
            valid=True,
            discount_amount=calculate_discount(promo, booking_amount),
            message=success_message(promo),
            promo_code=promo,
        )

    async def record_usage(
        self,
        db: AsyncSession,
        promo: PromoCode,
        user_id: UUID,
        booking_id: UUID,
        discount_amount: Decimal,
    ) -> PromoCodeUsage:
        """Append a redemption inside the booking transaction.

        The usage number is unique per code, so two concurrent redemptions of
        the last slot cannot both succeed; the loser recounts and retries.
        """
        for attempt in range(MAX_REDEMPTION_ATTEMPTS):
            used = await self._usage_count(db, promo.id)
            if promo.max_uses is not None and used >= promo.max_uses:
                raise ValidationError(USAGE_LIMIT_MESSAGE)

            usage = PromoCodeUsage(
                promo_code_id=promo.id,
                user_id=user_id,
                booking_id=booking_id,
                usage_number=used + 1,
                discount_amount=to_money(discount_amount),
            )
            try:
                async with db.begin_nested():
                    db.add(usage)
                    await db.flush()
                return usage
            except IntegrityError:
                logger.info(f"Promo {promo.code} usage #{used + 1} taken concurrently (attempt {attempt + 1})")

        raise ValidationError(USAGE_LIMIT_MESSAGE)

    # ============ AGENT MANAGEMENT ============

    async def create_promo_code(
        self,
        db: AsyncSession,
        agent: Agent,
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        min_booking_amount: Decimal | None = None,
        max_discount_amount: Decimal | None = None,
        max_uses: int | None = None,
        uses_per_user: int = 1,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        tour_ids: list[UUID] | None = None,
    ) -> PromoCode:
        """Create a promo code owned by ``agent``."""
        code = (code or "").strip().upper()
        if not CODE_PATTERN.match(code):
            raise ValidationError("Promo code must be 3-20 uppercase letters or digits")
        if discount_value <= 0:
            raise ValidationError("Discount value must be positive")
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if valid_from and valid_until and ensure_aware(valid_until) <= ensure_aware(valid_from):
            raise ValidationError("valid_until must be after valid_from")

        existing = await db.execute(select(PromoCode.id).where(PromoCode.code == code))
        if existing.scalar_one_or_none():
            raise ValidationError("Promo code already exists")

        tour_ids = tour_ids or []
        if tour_ids:
            owned = await db.execute(
                select(Tour.id).where(Tour.id.in_(tour_ids), Tour.agent_id == agent.id)
            )
            if len(set(owned.scalars().all())) != len(set(tour_ids)):
                raise ValidationError("Promo codes can only target your own tours")

        promo = PromoCode(
            agent_id=agent.id,
            code=code,
            discount_type=discount_type,
            discount_value=to_money(discount_value),
            min_booking_amount=min_booking_amount,
            max_discount_amount=max_discount_amount,
            max_uses=max_uses,
            uses_per_user=uses_per_user,
            valid_until=valid_until,
            tour_ids=[str(t) for t in tour_ids],
            is_active=True,
        )
        if valid_from is not None:
            promo.valid_from = valid_from
        db.add(promo)
        await db.flush()

        logger.info(f"Agent {agent.id} created promo code {code}")
        return promo

    async def list_promo_codes(self, db: AsyncSession, agent_id: UUID) -> list[tuple[PromoCode, int]]:
        """Agent's promo codes with their redemption counts, newest first."""
        usage_count = (
            select(func.count(PromoCodeUsage.id))
            .where(PromoCodeUsage.promo_code_id == PromoCode.id)
            .correlate(PromoCode)
            .scalar_subquery()
        )
        result = await db.execute(
            select(PromoCode, usage_count)
            .where(PromoCode.agent_id == agent_id)
            .order_by(PromoCode.created_at.desc())
        )
        return [(promo, count or 0) for promo, count in result.all()]


# Singleton instance
promo_service = PromoService()

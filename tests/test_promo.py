"""Tests for promo code validation and redemption."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from safari_ledger.core.exceptions import ValidationError
from safari_ledger.models.agent import AccountStatus
from safari_ledger.models.promo import DiscountType, PromoCodeUsage
from safari_ledger.services.promo_service import USAGE_LIMIT_MESSAGE, promo_service
from safari_ledger.utils.dates import utcnow
from tests.factories import create_agent, create_booking, create_promo, create_tour, create_user


async def _validate(db, code, tour, amount="300.00", user_id=None):
    result = await promo_service.validate_promo_code(
        db, code=code, tour_id=tour.id, booking_amount=Decimal(amount), user_id=user_id
    )
    await db.commit()
    return result


async def test_percentage_code_with_cap(db, agent, tour):
    await create_promo(db, agent, max_discount_amount=Decimal("50.00"))

    result = await _validate(db, "safari20", tour)

    assert result.valid is True
    assert result.discount_amount == Decimal("50.00")
    assert result.message == "20% discount applied"


async def test_unknown_code(db, tour):
    result = await _validate(db, "NOPE", tour)
    assert result.valid is False
    assert result.message == "Invalid promo code"


async def test_inactive_code(db, agent, tour):
    await create_promo(db, agent, is_active=False)
    result = await _validate(db, "SAFARI20", tour)
    assert result.message == "This promo code is no longer active"


async def test_suspended_agent_code(db, tour):
    suspended = await create_agent(db, status=AccountStatus.SUSPENDED)
    await create_promo(db, suspended)
    result = await _validate(db, "SAFARI20", tour)
    assert result.message == "This promo code is no longer valid"


async def test_validity_window(db, agent, tour):
    now = utcnow()
    await create_promo(db, agent, code="LATER", valid_from=now + timedelta(days=2))
    await create_promo(db, agent, code="OLD", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1))

    assert (await _validate(db, "LATER", tour)).message == "This promo code is not yet valid"
    assert (await _validate(db, "OLD", tour)).message == "This promo code has expired"


async def test_code_limited_to_other_tour(db, agent, tour):
    other = await create_tour(db, agent)
    await create_promo(db, agent, tour_ids=[str(other.id)])

    result = await _validate(db, "SAFARI20", tour)
    assert result.message == "This promo code is not valid for this tour"


async def test_code_of_another_agent(db, tour):
    rival = await create_agent(db)
    await create_promo(db, rival)

    result = await _validate(db, "SAFARI20", tour)
    assert result.message == "This promo code is not valid for this tour"


async def test_minimum_booking_amount(db, agent, tour):
    await create_promo(db, agent, min_booking_amount=Decimal("500.00"))

    result = await _validate(db, "SAFARI20", tour, amount="300.00")
    assert result.valid is False
    assert result.message == "Minimum booking amount of $500.00 required for this promo code"


async def test_usage_limits(db, agent, tour, customer):
    promo = await create_promo(db, agent, max_uses=1)
    booking = await create_booking(db, tour, customer)

    await promo_service.record_usage(db, promo, customer.id, booking.id, Decimal("60.00"))
    await db.commit()

    assert (await _validate(db, "SAFARI20", tour)).message == USAGE_LIMIT_MESSAGE

    with pytest.raises(ValidationError) as exc_info:
        other_booking = await create_booking(db, tour, customer)
        await promo_service.record_usage(db, promo, customer.id, other_booking.id, Decimal("60.00"))
    assert exc_info.value.detail == USAGE_LIMIT_MESSAGE
    await db.rollback()


async def test_per_user_limit(db, agent, tour, customer):
    promo = await create_promo(db, agent, uses_per_user=1)
    booking = await create_booking(db, tour, customer)
    await promo_service.record_usage(db, promo, customer.id, booking.id, Decimal("60.00"))
    await db.commit()

    mine = await _validate(db, "SAFARI20", tour, user_id=customer.id)
    assert mine.message == "You have already used this promo code the maximum number of times"

    someone_else = await create_user(db)
    theirs = await _validate(db, "SAFARI20", tour, user_id=someone_else.id)
    assert theirs.valid is True


async def test_validation_has_no_side_effects(db, agent, tour):
    await create_promo(db, agent)

    for _ in range(3):
        assert (await _validate(db, "SAFARI20", tour)).valid is True

    count = await db.execute(select(func.count(PromoCodeUsage.id)))
    assert count.scalar() == 0
    await db.rollback()


async def test_usage_numbers_are_sequential(db, agent, tour, customer):
    promo = await create_promo(db, agent, uses_per_user=5)
    first = await promo_service.record_usage(
        db, promo, customer.id, (await create_booking(db, tour, customer)).id, Decimal("10.00")
    )
    await db.commit()
    second = await promo_service.record_usage(
        db, promo, customer.id, (await create_booking(db, tour, customer)).id, Decimal("10.00")
    )
    await db.commit()

    assert (first.usage_number, second.usage_number) == (1, 2)


async def test_create_promo_code_rules(db, agent, tour):
    promo = await promo_service.create_promo_code(
        db,
        agent=agent,
        code="bigfive",
        discount_type=DiscountType.FIXED_AMOUNT,
        discount_value=Decimal("25"),
        tour_ids=[tour.id],
    )
    await db.commit()
    assert promo.code == "BIGFIVE"
    assert promo.tour_ids == [str(tour.id)]

    with pytest.raises(ValidationError):
        await promo_service.create_promo_code(
            db, agent=agent, code="BIGFIVE", discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("5")
        )
    with pytest.raises(ValidationError):
        await promo_service.create_promo_code(
            db, agent=agent, code="HALF", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("150")
        )

    rival = await create_agent(db)
    with pytest.raises(ValidationError):
        await promo_service.create_promo_code(
            db,
            agent=rival,
            code="STEAL",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            tour_ids=[tour.id],
        )
    await db.rollback()

"""Row factories for tests. Each one commits so other sessions can see it."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.core.security import create_access_token
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.models.agent import AccountStatus, Agent, CommissionTier
from safari_ledger.models.booking import Booking
from safari_ledger.models.promo import DiscountType, PromoCode
from safari_ledger.models.tour import AccommodationOption, ActivityAddon, Tour, TourStatus
from safari_ledger.models.user import User, UserRole


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


async def create_user(db: AsyncSession, role: UserRole = UserRole.CLIENT, **overrides) -> User:
    user = User(
        email=overrides.pop("email", f"{uuid4().hex[:10]}@example.com"),
        name=overrides.pop("name", "Test User"),
        role=role,
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(user)
    await db.commit()
    return user


async def create_agent(
    db: AsyncSession,
    commission_rate: Decimal = Decimal("15.00"),
    status: AccountStatus = AccountStatus.ACTIVE,
) -> Agent:
    user = await create_user(db, role=UserRole.AGENT)
    agent = Agent(
        user_id=user.id,
        business_name="Savannah Trails",
        status=status,
        commission_rate=commission_rate,
    )
    db.add(agent)
    await db.commit()
    return agent


async def agent_user(db: AsyncSession, agent: Agent) -> User:
    user = await db.get(User, agent.user_id)
    await db.commit()
    return user


async def create_tour(
    db: AsyncSession,
    agent: Agent,
    base_price: Decimal = Decimal("1000.00"),
    currency: str = "USD",
    duration_days: int = 3,
    status: TourStatus = TourStatus.ACTIVE,
) -> Tour:
    tour = Tour(
        agent_id=agent.id,
        title="Maasai Mara Explorer",
        status=status,
        base_price=base_price,
        currency=currency,
        duration_days=duration_days,
    )
    db.add(tour)
    await db.commit()
    return tour


async def add_tour_options(db: AsyncSession, tour: Tour) -> tuple[AccommodationOption, ActivityAddon]:
    option = AccommodationOption(tour_id=tour.id, name="Tented camp", price_per_night=Decimal("120.00"))
    addon = ActivityAddon(tour_id=tour.id, name="Balloon safari", price=Decimal("450.00"))
    db.add_all([option, addon])
    await db.commit()
    return option, addon


async def create_booking(
    db: AsyncSession,
    tour: Tour,
    user: User,
    total_amount: Decimal = Decimal("1000.00"),
    status: BookingStatus = BookingStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    agent_earnings: Decimal | None = None,
) -> Booking:
    booking = Booking(
        booking_reference=f"SF{uuid4().hex[:12].upper()}",
        tour_id=tour.id,
        user_id=user.id,
        agent_id=tour.agent_id,
        start_date=date(2026, 12, 1),
        end_date=date(2026, 12, 3),
        adults=1,
        children=0,
        base_amount=total_amount,
        total_amount=total_amount,
        currency=tour.currency,
        status=status,
        payment_status=payment_status,
        agent_earnings=agent_earnings,
        contact_name="Jane Traveler",
        contact_email="jane@example.com",
        contact_phone="+254700000000",
    )
    db.add(booking)
    await db.commit()
    return booking


async def create_settled_booking(db: AsyncSession, tour: Tour, user: User, earnings: Decimal) -> Booking:
    """Booking whose payment already settled with ``earnings`` for the agent."""
    return await create_booking(
        db,
        tour,
        user,
        total_amount=earnings,
        status=BookingStatus.PAID,
        payment_status=PaymentStatus.COMPLETED,
        agent_earnings=earnings,
    )


async def create_promo(db: AsyncSession, agent: Agent, code: str = "SAFARI20", **overrides) -> PromoCode:
    promo = PromoCode(
        agent_id=agent.id,
        code=code,
        discount_type=overrides.pop("discount_type", DiscountType.PERCENTAGE),
        discount_value=overrides.pop("discount_value", Decimal("20.00")),
        uses_per_user=overrides.pop("uses_per_user", 1),
        tour_ids=overrides.pop("tour_ids", []),
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(promo)
    await db.commit()
    return promo


async def create_tier(
    db: AsyncSession,
    name: str,
    commission_rate: Decimal,
    min_bookings: int = 0,
    **overrides,
) -> CommissionTier:
    tier = CommissionTier(
        name=name,
        commission_rate=commission_rate,
        min_bookings=min_bookings,
        is_active=overrides.pop("is_active", True),
        **overrides,
    )
    db.add(tier)
    await db.commit()
    return tier

"""Booking creation and lifecycle service."""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from safari_ledger.core.exceptions import (
    AuthorizationError,
    BookingNotFound,
    NotFoundError,
    ValidationError,
)
from safari_ledger.domain.booking_state import (
    AGENT_TARGETS,
    CUSTOMER_TARGETS,
    BookingStatus,
    apply_booking_transition,
)
from safari_ledger.domain.payment_state import PaymentStatus, assert_payment_transition
from safari_ledger.domain.pricing import PriceBreakdown, calculate_price_breakdown
from safari_ledger.models.admin import AuditAction
from safari_ledger.models.agent import Agent
from safari_ledger.models.booking import Booking, BookingAccommodation, BookingActivity
from safari_ledger.models.payment import Payment
from safari_ledger.models.promo import PromoCode
from safari_ledger.models.tour import Tour, TourStatus
from safari_ledger.models.user import User, UserRole
from safari_ledger.schemas.booking import BookingCreate, BookingQuote
from safari_ledger.services.audit_service import audit_service
from safari_ledger.services.promo_service import promo_service
from safari_ledger.utils.booking_number import generate_booking_reference

logger = logging.getLogger(__name__)


@dataclass
class BookingQuoteResult:
    """Priced booking, ready to persist or display."""

    tour: Tour
    breakdown: PriceBreakdown
    accommodations: list[BookingAccommodation] = field(default_factory=list)
    activities: list[BookingActivity] = field(default_factory=list)
    promo_code: PromoCode | None = None
    promo_message: str | None = None


class BookingService:
    """Service for pricing, creating and transitioning bookings."""

    async def _get_bookable_tour(self, db: AsyncSession, tour_id: UUID) -> Tour:
        result = await db.execute(
            select(Tour)
            .options(selectinload(Tour.accommodation_options), selectinload(Tour.activity_addons))
            .where(Tour.id == tour_id)
        )
        tour = result.scalar_one_or_none()
        if not tour:
            raise NotFoundError("Tour", str(tour_id))
        if tour.status != TourStatus.ACTIVE:
            raise ValidationError("Tour is not available for booking")
        return tour

    async def quote(
        self,
        db: AsyncSession,
        data: BookingQuote,
        user_id: UUID | None = None,
    ) -> BookingQuoteResult:
        """Price a booking request without persisting anything.

        Raises:
            NotFoundError: Unknown tour
            ValidationError: Inactive tour, foreign line items or an invalid promo code
        """
        tour = await self._get_bookable_tour(db, data.tour_id)
        options = {o.id: o for o in tour.accommodation_options}
        addons = {a.id: a for a in tour.activity_addons}
        party_size = data.adults + data.children

        accommodations = []
        for selection in sorted(data.accommodations, key=lambda s: s.day_number):
            option = options.get(selection.option_id)
            if option is None:
                raise ValidationError("Accommodation option does not belong to this tour")
            if selection.day_number > tour.duration_days:
                raise ValidationError(f"Day {selection.day_number} is outside the tour duration")
            accommodations.append(
                BookingAccommodation(
                    accommodation_option_id=option.id,
                    day_number=selection.day_number,
                    price=option.price_per_night,
                )
            )

        activities = []
        for addon_id in data.activity_ids:
            addon = addons.get(addon_id)
            if addon is None:
                raise ValidationError("Activity does not belong to this tour")
            activities.append(
                BookingActivity(
                    activity_addon_id=addon.id,
                    quantity=party_size,
                    price=addon.price * party_size,
                )
            )

        try:
            breakdown = calculate_price_breakdown(
                base_price=tour.base_price,
                adults=data.adults,
                children=data.children,
                accommodation_prices=[a.price for a in accommodations],
                addon_prices=[addons[a.activity_addon_id].price for a in activities],
            )
        except ValueError as e:
            raise ValidationError(str(e)) from e

        quote = BookingQuoteResult(
            tour=tour,
            breakdown=breakdown,
            accommodations=accommodations,
            activities=activities,
        )

        if data.promo_code:
            validation = await promo_service.validate_promo_code(
                db,
                code=data.promo_code,
                tour_id=tour.id,
                booking_amount=breakdown.subtotal,
                user_id=user_id,
            )
            if not validation.valid:
                raise ValidationError(validation.message or "Invalid promo code")
            quote.breakdown = breakdown.with_discount(validation.discount_amount)
            quote.promo_code = validation.promo_code
            quote.promo_message = validation.message

        return quote

    async def create_booking(self, db: AsyncSession, data: BookingCreate, user: User) -> Booking:
        """Create a PENDING booking with its stored price breakdown.

        Promo usage is recorded in the same transaction.
        """
        quote = await self.quote(db, data, user_id=user.id)
        tour = quote.tour
        breakdown = quote.breakdown
        end_date = data.end_date or data.start_date + timedelta(days=max(tour.duration_days - 1, 0))

        booking = Booking(
            booking_reference=await generate_booking_reference(db),
            tour_id=tour.id,
            user_id=user.id,
            agent_id=tour.agent_id,
            start_date=data.start_date,
            end_date=end_date,
            adults=data.adults,
            children=data.children,
            base_amount=breakdown.base_amount,
            accommodation_amount=breakdown.accommodation_amount,
            activities_amount=breakdown.activities_amount,
            tax_amount=breakdown.tax_amount,
            discount_amount=breakdown.discount_amount,
            total_amount=breakdown.total_amount,
            currency=tour.currency,
            promo_code_id=quote.promo_code.id if quote.promo_code else None,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            contact_name=data.contact_name,
            contact_email=str(data.contact_email),
            contact_phone=data.contact_phone,
            special_requests=data.special_requests,
            accommodations=quote.accommodations,
            activities=quote.activities,
        )
        db.add(booking)
        await db.flush()

        if quote.promo_code:
            await promo_service.record_usage(
                db,
                promo=quote.promo_code,
                user_id=user.id,
                booking_id=booking.id,
                discount_amount=breakdown.discount_amount,
            )

        logger.info(
            f"Booking {booking.booking_reference} created for tour {tour.id}: total={booking.total_amount}"
        )
        return booking

    async def get_agent_for_user(self, db: AsyncSession, user_id: UUID) -> Agent | None:
        result = await db.execute(select(Agent).where(Agent.user_id == user_id))
        return result.scalar_one_or_none()

    async def get_booking(self, db: AsyncSession, booking_id: UUID) -> Booking:
        result = await db.execute(select(Booking).where(Booking.id == booking_id))
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFound(str(booking_id))
        return booking

    async def get_booking_for_user(self, db: AsyncSession, booking_id: UUID, user: User) -> Booking:
        """Load a booking readable by its buyer, its agent or an admin."""
        booking = await self.get_booking(db, booking_id)
        if user.role == UserRole.ADMIN or booking.user_id == user.id:
            return booking
        agent = await self.get_agent_for_user(db, user.id)
        if agent is not None and agent.id == booking.agent_id:
            return booking
        raise AuthorizationError("You don't have permission to access this booking")

    async def transition_booking(
        self,
        db: AsyncSession,
        booking_id: UUID,
        target: BookingStatus,
        actor: User,
        reason: str | None = None,
    ) -> Booking:
        """Move a booking along the transition table on behalf of ``actor``.

        Raises:
            BookingNotFound: Unknown booking
            AuthorizationError: Actor may not request this status
            InvalidTransition: Target not reachable from the current status
        """
        target = BookingStatus(target)
        booking = await self.get_booking(db, booking_id)

        if target == BookingStatus.PAID:
            raise AuthorizationError("Bookings are marked paid only by payment settlement")

        default_reason = "Cancelled by admin"
        if actor.role != UserRole.ADMIN:
            agent = await self.get_agent_for_user(db, actor.id)
            is_agent = agent is not None and agent.id == booking.agent_id
            is_buyer = booking.user_id == actor.id
            if is_agent and target in AGENT_TARGETS:
                default_reason = "Cancelled by agent"
            elif is_buyer and target in CUSTOMER_TARGETS:
                default_reason = "Cancelled by customer"
            elif is_agent or is_buyer:
                raise AuthorizationError(f"You are not allowed to set booking status to {target.value}")
            else:
                raise AuthorizationError("You don't have permission to access this booking")

        old_payment_status = booking.payment_status
        previous = apply_booking_transition(
            booking,
            target,
            reason=reason or (default_reason if target == BookingStatus.CANCELLED else None),
        )

        if target == BookingStatus.REFUNDED:
            await self.mark_refunded(db, booking)

        await audit_service.log_booking_action(
            db=db,
            user_id=actor.id,
            action=AuditAction.BOOKING_REFUNDED if target == BookingStatus.REFUNDED else AuditAction.BOOKING_STATUS_CHANGED,
            booking_id=booking.id,
            old_values={"status": previous, "payment_status": old_payment_status},
            new_values={
                "status": booking.status,
                "payment_status": booking.payment_status,
                "reason": booking.cancellation_reason if target == BookingStatus.CANCELLED else reason,
            },
        )
        await db.flush()

        logger.info(f"Booking {booking.booking_reference}: {previous.value} -> {target.value} by {actor.id}")
        return booking

    async def mark_refunded(self, db: AsyncSession, booking: Booking) -> None:
        """Refund bookkeeping: the settled payment leaves the agent's earnings."""
        if booking.payment_status == PaymentStatus.COMPLETED:
            booking.payment_status = PaymentStatus.REFUNDED

        result = await db.execute(
            select(Payment).where(
                Payment.booking_id == booking.id,
                Payment.status == PaymentStatus.COMPLETED,
            )
        )
        payment = result.scalar_one_or_none()
        if payment:
            assert_payment_transition(payment.status, PaymentStatus.REFUNDED)
            payment.status = PaymentStatus.REFUNDED
            payment.status_message = "Refunded"


# Singleton instance
booking_service = BookingService()

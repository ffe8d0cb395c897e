"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_current_user, get_db
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.models.booking import Booking
from safari_ledger.models.user import User
from safari_ledger.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingQuote,
    BookingResponse,
    BookingStatusUpdate,
    PriceBreakdownResponse,
)
from safari_ledger.services.booking_service import booking_service
from safari_ledger.services.notification_service import notification_service

router = APIRouter()


def _status_payload(booking: Booking) -> dict:
    return {
        "booking_id": str(booking.id),
        "booking_reference": booking.booking_reference,
        "user_id": str(booking.user_id),
        "agent_id": str(booking.agent_id),
        "status": booking.status.value,
    }


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Create a booking. Prices are fixed at this point."""
    booking = await booking_service.create_booking(db, data, current_user)
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.BOOKING_CREATED,
        _status_payload(booking),
    )
    return booking


@router.post("/calculate", response_model=PriceBreakdownResponse)
async def calculate_booking_price(
    data: BookingQuote,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PriceBreakdownResponse:
    """Price a booking without creating it."""
    quote = await booking_service.quote(db, data, user_id=current_user.id)
    breakdown = quote.breakdown
    return PriceBreakdownResponse(
        base_amount=breakdown.base_amount,
        accommodation_amount=breakdown.accommodation_amount,
        activities_amount=breakdown.activities_amount,
        subtotal=breakdown.subtotal,
        tax_amount=breakdown.tax_amount,
        discount_amount=breakdown.discount_amount,
        total_amount=breakdown.total_amount,
        currency=quote.tour.currency,
        promo_message=quote.promo_message,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Get booking details (buyer, agent or admin)."""
    return await booking_service.get_booking_for_user(db, booking_id, current_user)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    data: BookingCancel,
    background_tasks: BackgroundTasks,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Cancel a booking as its buyer or agent."""
    booking = await booking_service.transition_booking(
        db, booking_id, BookingStatus.CANCELLED, current_user, reason=data.reason
    )
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.BOOKING_CANCELLED,
        {**_status_payload(booking), "reason": booking.cancellation_reason},
    )
    return booking


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    data: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Booking:
    """Move a booking to a new status (agent or admin).

    Invalid transitions return 400 with the allowed targets.
    """
    booking = await booking_service.transition_booking(
        db, booking_id, data.status, current_user, reason=data.reason
    )
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.BOOKING_STATUS_CHANGED,
        _status_payload(booking),
    )
    return booking

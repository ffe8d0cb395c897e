"""Tests for booking creation, pricing and status changes."""

from decimal import Decimal

import pytest
from sqlalchemy import select

from safari_ledger.core.exceptions import AuthorizationError
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.models.admin import AuditAction, AuditLog
from safari_ledger.models.booking import Booking
from safari_ledger.models.promo import PromoCodeUsage
from safari_ledger.services.booking_service import booking_service
from safari_ledger.services.settlement_service import settlement_service
from tests.factories import (
    add_tour_options,
    agent_user,
    auth_headers,
    create_booking,
    create_promo,
    create_tour,
    create_user,
)


def _booking_body(tour, option=None, addon=None, **extra) -> dict:
    body = {
        "tourId": str(tour.id),
        "startDate": "2026-12-01",
        "adults": 2,
        "children": 1,
        "contactName": "Jane Traveler",
        "contactEmail": "jane@example.com",
        "contactPhone": "+254700000000",
    }
    if option is not None:
        body["accommodations"] = [
            {"dayNumber": 1, "optionId": str(option.id)},
            {"dayNumber": 2, "optionId": str(option.id)},
        ]
    if addon is not None:
        body["activityIds"] = [str(addon.id)]
    body.update(extra)
    return body


async def test_create_booking_stores_price_breakdown(client, db, tour, customer):
    option, addon = await add_tour_options(db, tour)

    response = await client.post(
        "/api/v1/bookings", json=_booking_body(tour, option, addon), headers=auth_headers(customer)
    )

    assert response.status_code == 201
    data = response.json()
    assert data["bookingReference"].startswith("SF")
    assert data["status"] == "PENDING"
    assert data["paymentStatus"] == "PENDING"
    assert data["baseAmount"] == 2700.0
    assert data["accommodationAmount"] == 240.0
    assert data["activitiesAmount"] == 1350.0
    assert data["taxAmount"] == 214.5
    assert data["totalAmount"] == 4504.5
    assert data["endDate"] == "2026-12-03"
    assert data["agentId"] == str(tour.agent_id)
    assert len(data["accommodations"]) == 2
    assert data["activities"][0]["quantity"] == 3


async def test_create_booking_with_promo_records_usage(client, db, agent, tour, customer):
    option, addon = await add_tour_options(db, tour)
    promo = await create_promo(db, agent)

    response = await client.post(
        "/api/v1/bookings",
        json=_booking_body(tour, option, addon, promoCode="safari20"),
        headers=auth_headers(customer),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["discountAmount"] == 858.0
    assert data["totalAmount"] == 3646.5

    result = await db.execute(select(PromoCodeUsage).where(PromoCodeUsage.promo_code_id == promo.id))
    usages = result.scalars().all()
    await db.commit()
    assert len(usages) == 1
    assert usages[0].usage_number == 1
    assert usages[0].discount_amount == Decimal("858.00")


async def test_invalid_promo_rejects_booking(client, db, tour, customer):
    response = await client.post(
        "/api/v1/bookings", json=_booking_body(tour, promoCode="NOSUCH"), headers=auth_headers(customer)
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Invalid promo code"

    count = await db.execute(select(Booking.id))
    assert count.first() is None
    await db.rollback()


async def test_calculate_does_not_persist(client, db, tour, customer):
    response = await client.post(
        "/api/v1/bookings/calculate",
        json={"tourId": str(tour.id), "startDate": "2026-12-01", "adults": 1},
        headers=auth_headers(customer),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["subtotal"] == 1000.0
    assert data["taxAmount"] == 50.0
    assert data["totalAmount"] == 1050.0
    assert data["currency"] == "USD"

    count = await db.execute(select(Booking.id))
    assert count.first() is None
    await db.rollback()


async def test_foreign_accommodation_is_rejected(client, db, agent, tour, customer):
    other_tour = await create_tour(db, agent)
    option, _ = await add_tour_options(db, other_tour)

    response = await client.post(
        "/api/v1/bookings", json=_booking_body(tour, option), headers=auth_headers(customer)
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Accommodation option does not belong to this tour"


async def test_malformed_booking_returns_field_errors(client, tour, customer):
    body = _booking_body(tour)
    body["adults"] = 0
    del body["contactEmail"]

    response = await client.post("/api/v1/bookings", json=body, headers=auth_headers(customer))

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    fields = {f["field"] for f in data["fields"]}
    assert {"adults", "contactEmail"} <= fields


async def test_booking_requires_authentication(client, tour):
    response = await client.post("/api/v1/bookings", json=_booking_body(tour))
    assert response.status_code == 401


async def test_customer_can_cancel_own_booking(client, db, tour, customer):
    booking = await create_booking(db, tour, customer)

    response = await client.post(
        f"/api/v1/bookings/{booking.id}/cancel", json={}, headers=auth_headers(customer)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["cancellationReason"] == "Cancelled by customer"
    assert data["cancelledAt"] is not None


async def test_stranger_cannot_cancel(client, db, tour, customer):
    booking = await create_booking(db, tour, customer)
    stranger = await create_user(db)

    response = await client.post(
        f"/api/v1/bookings/{booking.id}/cancel", json={}, headers=auth_headers(stranger)
    )

    assert response.status_code == 403


async def test_agent_confirms_but_cannot_refund(client, db, agent, tour, customer):
    booking = await create_booking(db, tour, customer)
    headers = auth_headers(await agent_user(db, agent))

    confirmed = await client.patch(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "CONFIRMED"}, headers=headers
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["confirmedAt"] is not None

    bad = await client.patch(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "REFUNDED"}, headers=headers
    )
    assert bad.status_code == 403


async def test_invalid_transition_returns_allowed_targets(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer)

    response = await client.patch(
        f"/api/v1/bookings/{booking.id}/status",
        json={"status": "COMPLETED"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "INVALID_TRANSITION"
    assert body["detail"]["currentStatus"] == "PENDING"
    assert body["detail"]["requestedStatus"] == "COMPLETED"
    assert body["detail"]["allowedTransitions"] == ["CANCELLED", "CONFIRMED"]


async def test_paid_is_reserved_for_settlement(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer, status=BookingStatus.CONFIRMED)

    response = await client.patch(
        f"/api/v1/bookings/{booking.id}/status", json={"status": "PAID"}, headers=auth_headers(admin)
    )

    assert response.status_code == 403


async def test_customer_cannot_confirm(db, tour, customer):
    booking = await create_booking(db, tour, customer)

    with pytest.raises(AuthorizationError):
        await booking_service.transition_booking(db, booking.id, BookingStatus.CONFIRMED, customer)
    await db.rollback()


async def test_refund_marks_payment_refunded(db, tour, customer, admin):
    booking = await create_booking(db, tour, customer)
    result = await settlement_service.settle(
        db, booking_id=booking.id, payment_amount=Decimal("1000.00"), external_ref="TX-R"
    )
    await db.commit()

    refunded = await booking_service.transition_booking(db, booking.id, BookingStatus.REFUNDED, admin)
    await db.commit()

    assert refunded.status == BookingStatus.REFUNDED
    assert refunded.payment_status == PaymentStatus.REFUNDED
    assert result.payment.status == PaymentStatus.REFUNDED

    audit = await db.execute(
        select(AuditLog).where(
            AuditLog.resource_id == booking.id,
            AuditLog.action == AuditAction.BOOKING_REFUNDED.value,
        )
    )
    assert audit.scalar_one().user_id == admin.id
    await db.rollback()


async def test_get_booking_visibility(client, db, agent, tour, customer):
    booking = await create_booking(db, tour, customer)
    stranger = await create_user(db)

    own = await client.get(f"/api/v1/bookings/{booking.id}", headers=auth_headers(customer))
    by_agent = await client.get(
        f"/api/v1/bookings/{booking.id}", headers=auth_headers(await agent_user(db, agent))
    )
    other = await client.get(f"/api/v1/bookings/{booking.id}", headers=auth_headers(stranger))

    assert own.status_code == 200
    assert by_agent.status_code == 200
    assert other.status_code == 403

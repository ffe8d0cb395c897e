"""HTTP tests for withdrawals, payments, the agent dashboard and the admin back office."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.gateways.base import GatewayType, PaymentResult
from safari_ledger.services.gateway_service import gateway_service
from tests.factories import (
    agent_user,
    auth_headers,
    create_booking,
    create_settled_booking,
    create_tier,
)

MPESA_BODY = {"method": "MPESA", "mpesaPhone": "+254712345678", "currency": "USD"}


async def _agent_headers(db, agent):
    return auth_headers(await agent_user(db, agent))


async def _pending_withdrawal(client, db, agent, tour, customer, amount=100):
    await create_settled_booking(db, tour, customer, Decimal("500.00"))
    response = await client.post(
        "/api/v1/withdrawals", json={**MPESA_BODY, "amount": amount}, headers=await _agent_headers(db, agent)
    )
    assert response.status_code == 201
    return response.json()["id"]


# ============ WITHDRAWALS ============


async def test_request_withdrawal(client, db, agent, tour, customer):
    await create_settled_booking(db, tour, customer, Decimal("500.00"))
    headers = await _agent_headers(db, agent)

    response = await client.post("/api/v1/withdrawals", json={**MPESA_BODY, "amount": 200}, headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["amount"] == 200.0
    assert data["mpesaPhone"] == "+254712345678"

    listing = await client.get("/api/v1/withdrawals", headers=headers)
    assert listing.json()["meta"]["total"] == 1


async def test_bank_withdrawal_masks_account_number(client, db, agent, tour, customer):
    await create_settled_booking(db, tour, customer, Decimal("500.00"))

    response = await client.post(
        "/api/v1/withdrawals",
        json={
            "amount": 100,
            "currency": "KES",
            "method": "BANK",
            "bankName": "Equity Bank",
            "accountNumber": "0123456789",
            "accountName": "Savannah Trails Ltd",
        },
        headers=await _agent_headers(db, agent),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["accountNumberMasked"].endswith("6789")
    assert "0123456789" not in response.text


async def test_withdrawal_over_balance(client, db, agent, tour, customer):
    await create_settled_booking(db, tour, customer, Decimal("150.00"))

    response = await client.post(
        "/api/v1/withdrawals", json={**MPESA_BODY, "amount": 200}, headers=await _agent_headers(db, agent)
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Insufficient balance. Available: $150.00", "code": "INSUFFICIENT_BALANCE"}


async def test_withdrawal_below_minimum(client, db, agent):
    response = await client.post(
        "/api/v1/withdrawals", json={**MPESA_BODY, "amount": 10}, headers=await _agent_headers(db, agent)
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "Minimum withdrawal amount is $50.00"


async def test_withdrawal_malformed_amount(client, db, agent):
    response = await client.post(
        "/api/v1/withdrawals", json={**MPESA_BODY, "amount": -5}, headers=await _agent_headers(db, agent)
    )

    assert response.status_code == 400
    assert response.json()["fields"][0]["field"] == "amount"


async def test_customer_cannot_withdraw(client, customer):
    response = await client.post(
        "/api/v1/withdrawals", json={**MPESA_BODY, "amount": 100}, headers=auth_headers(customer)
    )
    assert response.status_code == 403


async def test_balance_overview(client, db, agent, tour, customer):
    await create_settled_booking(db, tour, customer, Decimal("850.00"))
    await _pending_withdrawal(client, db, agent, tour, customer, amount=300)

    response = await client.get("/api/v1/agent/balance", headers=await _agent_headers(db, agent))

    assert response.status_code == 200
    data = response.json()
    assert data["totalEarnings"] == 1350.0
    assert data["pendingWithdrawals"] == 300.0
    assert data["availableBalance"] == 1050.0
    assert data["totalWithdrawn"] == 0.0
    assert data["stats"]["settledBookings"] == 2
    assert data["stats"]["withdrawalCount"] == 1


# ============ ADMIN WITHDRAWALS ============


async def test_admin_withdrawal_lifecycle(client, db, agent, tour, customer, admin):
    withdrawal_id = await _pending_withdrawal(client, db, agent, tour, customer)
    headers = auth_headers(admin)

    approved = await client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/approve", headers=headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    processing = await client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/start-processing", headers=headers)
    assert processing.json()["status"] == "PROCESSING"

    completed = await client.post(
        f"/api/v1/admin/withdrawals/{withdrawal_id}/process",
        json={"transactionRef": "MPESA-QX12"},
        headers=headers,
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"
    assert completed.json()["transactionRef"] == "MPESA-QX12"

    again = await client.post(f"/api/v1/admin/withdrawals/{withdrawal_id}/approve", headers=headers)
    assert again.status_code == 400
    assert again.json()["code"] == "INVALID_WITHDRAWAL_STATUS"


async def test_admin_rejects_withdrawal(client, db, agent, tour, customer, admin):
    withdrawal_id = await _pending_withdrawal(client, db, agent, tour, customer)

    response = await client.post(
        f"/api/v1/admin/withdrawals/{withdrawal_id}/reject",
        json={"reason": "Phone number does not match KYC"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"
    assert response.json()["rejectionReason"] == "Phone number does not match KYC"


async def test_admin_start_processing_requires_approval(client, db, agent, tour, customer, admin):
    withdrawal_id = await _pending_withdrawal(client, db, agent, tour, customer)

    response = await client.post(
        f"/api/v1/admin/withdrawals/{withdrawal_id}/start-processing", headers=auth_headers(admin)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot start processing withdrawal with status: PENDING"


async def test_admin_unknown_withdrawal(client, admin):
    response = await client.post(f"/api/v1/admin/withdrawals/{uuid4()}/approve", headers=auth_headers(admin))
    assert response.status_code == 404


async def test_admin_withdrawal_list_filters_by_status(client, db, agent, tour, customer, admin):
    await _pending_withdrawal(client, db, agent, tour, customer)

    pending = await client.get("/api/v1/admin/withdrawals?status=PENDING", headers=auth_headers(admin))
    rejected = await client.get("/api/v1/admin/withdrawals?status=REJECTED", headers=auth_headers(admin))

    assert pending.json()["meta"]["total"] == 1
    assert rejected.json()["meta"]["total"] == 0


async def test_admin_routes_require_admin(client, db, agent):
    anonymous = await client.get("/api/v1/admin/withdrawals")
    as_agent = await client.get("/api/v1/admin/withdrawals", headers=await _agent_headers(db, agent))

    assert anonymous.status_code == 401
    assert as_agent.status_code == 403


# ============ MANUAL SETTLEMENT ============


async def test_admin_settles_booking(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer, status=BookingStatus.CONFIRMED)
    body = {"amount": 1000.00, "transactionRef": "BANK-7781"}

    first = await client.post(f"/api/v1/admin/bookings/{booking.id}/settle", json=body, headers=auth_headers(admin))
    second = await client.post(f"/api/v1/admin/bookings/{booking.id}/settle", json=body, headers=auth_headers(admin))

    assert first.status_code == 200
    data = first.json()
    assert data["alreadySettled"] is False
    assert data["bookingStatus"] == "PAID"
    assert data["paymentStatus"] == "COMPLETED"
    assert data["platformCommission"] == 150.0
    assert data["agentEarnings"] == 850.0

    assert second.status_code == 200
    assert second.json()["alreadySettled"] is True
    assert second.json()["paymentId"] == data["paymentId"]


async def test_admin_settlement_mismatch_is_audited(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer)
    headers = auth_headers(admin)

    response = await client.post(
        f"/api/v1/admin/bookings/{booking.id}/settle",
        json={"amount": 900.00, "transactionRef": "BANK-1"},
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "AMOUNT_MISMATCH"

    logs = await client.get(
        "/api/v1/admin/audit-logs",
        params={"action": "PAYMENT_AMOUNT_MISMATCH", "resourceId": str(booking.id)},
        headers=headers,
    )
    assert logs.json()["meta"]["total"] == 1
    entry = logs.json()["logs"][0]
    assert entry["userId"] == str(admin.id)
    assert entry["newValues"]["transaction_ref"] == "BANK-1"


async def test_admin_settlement_on_cancelled_booking_is_audited(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer, status=BookingStatus.CANCELLED)
    headers = auth_headers(admin)

    response = await client.post(
        f"/api/v1/admin/bookings/{booking.id}/settle",
        json={"amount": 1000.00, "transactionRef": "BANK-LATE"},
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "TERMINAL_STATE_SETTLEMENT"

    logs = await client.get(
        "/api/v1/admin/audit-logs",
        params={"action": "PAYMENT_TERMINAL_STATE", "resourceId": str(booking.id)},
        headers=headers,
    )
    assert logs.json()["meta"]["total"] == 1
    assert logs.json()["logs"][0]["userId"] == str(admin.id)


async def test_admin_second_settlement_reference_is_rejected(client, db, tour, customer, admin):
    booking = await create_booking(db, tour, customer, status=BookingStatus.CONFIRMED)
    headers = auth_headers(admin)
    url = f"/api/v1/admin/bookings/{booking.id}/settle"

    first = await client.post(url, json={"amount": 1000.00, "transactionRef": "BANK-1"}, headers=headers)
    second = await client.post(url, json={"amount": 1000.00, "transactionRef": "BANK-2"}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "DUPLICATE_SETTLEMENT"

    logs = await client.get(
        "/api/v1/admin/audit-logs",
        params={"action": "PAYMENT_DUPLICATE_CAPTURE", "resourceId": str(booking.id)},
        headers=headers,
    )
    assert logs.json()["meta"]["total"] == 1
    entry = logs.json()["logs"][0]
    assert entry["userId"] == str(admin.id)
    assert entry["newValues"]["transaction_ref"] == "BANK-2"


# ============ COMMISSION ============


async def test_commission_tier_crud(client, admin):
    headers = auth_headers(admin)

    created = await client.post(
        "/api/v1/admin/commission-tiers",
        json={"name": "Gold", "minBookings": 50, "minRevenue": 20000, "commissionRate": 10},
        headers=headers,
    )
    assert created.status_code == 201
    tier_id = created.json()["id"]
    assert created.json()["commissionRate"] == 10.0

    updated = await client.patch(
        f"/api/v1/admin/commission-tiers/{tier_id}", json={"commissionRate": 9.5}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["commissionRate"] == 9.5
    assert updated.json()["name"] == "Gold"

    deleted = await client.delete(f"/api/v1/admin/commission-tiers/{tier_id}", headers=headers)
    assert deleted.status_code == 204

    missing = await client.patch(
        f"/api/v1/admin/commission-tiers/{tier_id}", json={"commissionRate": 8}, headers=headers
    )
    assert missing.status_code == 404

    logs = await client.get("/api/v1/admin/audit-logs", params={"resourceType": "commission_tier"}, headers=headers)
    actions = {log["action"] for log in logs.json()["logs"]}
    assert actions == {"COMMISSION_TIER_CREATED", "COMMISSION_TIER_UPDATED", "COMMISSION_TIER_DELETED"}


async def test_commission_tiers_listed_highest_first(client, db, admin):
    await create_tier(db, "Bronze", Decimal("14.00"), min_bookings=0)
    await create_tier(db, "Gold", Decimal("10.00"), min_bookings=50)
    await create_tier(db, "Silver", Decimal("12.00"), min_bookings=10)

    response = await client.get("/api/v1/admin/commission-tiers", headers=auth_headers(admin))

    assert [t["name"] for t in response.json()] == ["Gold", "Silver", "Bronze"]


async def test_agent_commission_rate_bounds(client, agent, admin):
    headers = auth_headers(admin)

    ok = await client.patch(
        f"/api/v1/admin/agents/{agent.id}/commission", json={"commissionRate": 12.5}, headers=headers
    )
    too_high = await client.patch(
        f"/api/v1/admin/agents/{agent.id}/commission", json={"commissionRate": 55}, headers=headers
    )
    unknown = await client.patch(
        f"/api/v1/admin/agents/{uuid4()}/commission", json={"commissionRate": 10}, headers=headers
    )

    assert ok.status_code == 200
    assert ok.json()["commissionRate"] == 12.5
    assert too_high.status_code == 400
    assert unknown.status_code == 404


# ============ PAYMENTS ============


async def test_payment_methods_for_kenya(client):
    response = await client.get("/api/v1/payments/methods", params={"currency": "kes", "country": "KE"})

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "KES"
    assert data["recommendedGateway"] == "pesapal"
    assert [m["method"] for m in data["methods"]] == ["mpesa", "card", "bank_transfer"]
    assert {m["gateway"] for m in data["methods"]} == {"pesapal"}


async def test_initiate_card_payment_routes_to_flutterwave(client, db, tour, customer):
    booking = await create_booking(db, tour, customer)
    gateway_result = PaymentResult(
        success=True, transaction_id="FLW-TX-1", redirect_url="https://checkout.flutterwave.com/pay/abc"
    )

    with patch.object(gateway_service, "create_payment", AsyncMock(return_value=gateway_result)) as create_payment:
        response = await client.post(
            "/api/v1/payments/initiate",
            json={"bookingId": str(booking.id), "method": "CARD"},
            headers=auth_headers(customer),
        )

    assert response.status_code == 200
    data = response.json()
    assert data["gateway"] == "flutterwave"
    assert data["redirectUrl"] == "https://checkout.flutterwave.com/pay/abc"
    assert data["amount"] == 1000.0
    assert data["merchantReference"].startswith(booking.booking_reference)
    assert create_payment.await_args.kwargs["gateway_type"] == GatewayType.FLUTTERWAVE


async def test_only_buyer_can_pay(client, db, agent, tour, customer):
    booking = await create_booking(db, tour, customer)

    with patch.object(gateway_service, "create_payment", AsyncMock()) as create_payment:
        response = await client.post(
            "/api/v1/payments/initiate",
            json={"bookingId": str(booking.id), "method": "CARD"},
            headers=await _agent_headers(db, agent),
        )

    assert response.status_code == 403
    create_payment.assert_not_awaited()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from safari_ledger.api.v1 import (
    admin,
    agent,
    bookings,
    payments,
    promo,
    webhooks,
    withdrawals,
)

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Promo codes
api_router.include_router(promo.router, prefix="/promo", tags=["Promo Codes"])

# Withdrawals
api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["Withdrawals"])

# Agent dashboard
api_router.include_router(agent.router, prefix="/agent", tags=["Agent"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

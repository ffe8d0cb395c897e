"""Payment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_current_user, get_db
from safari_ledger.domain.gateway_routing import (
    available_payment_methods,
    recommended_gateway,
    select_gateway,
)
from safari_ledger.models.user import User
from safari_ledger.schemas.payment import (
    PaymentInitiate,
    PaymentInitiateResponse,
    PaymentMethodOption,
    PaymentMethodsResponse,
)
from safari_ledger.services.payment_service import payment_service

router = APIRouter()


@router.post("/initiate", response_model=PaymentInitiateResponse)
async def initiate_payment(
    data: PaymentInitiate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PaymentInitiateResponse:
    """Start paying for a booking; returns the gateway redirect."""
    payment, result = await payment_service.initiate_payment(
        db,
        booking_id=data.booking_id,
        method=data.method,
        user=current_user,
        phone_number=data.phone_number,
    )
    return PaymentInitiateResponse(
        payment_id=payment.id,
        merchant_reference=payment.merchant_reference,
        gateway=payment.gateway,
        redirect_url=result.redirect_url,
        amount=payment.amount,
        currency=payment.currency,
    )


@router.get("/methods", response_model=PaymentMethodsResponse)
async def get_payment_methods(
    currency: str = Query(default="USD", min_length=3, max_length=3),
    country: str | None = Query(default=None, min_length=2, max_length=2),
) -> PaymentMethodsResponse:
    """Payment methods available for a currency and the gateway each uses."""
    currency = currency.upper()
    return PaymentMethodsResponse(
        currency=currency,
        recommended_gateway=recommended_gateway(country).value if country else None,
        methods=[
            PaymentMethodOption(method=method, gateway=select_gateway(method, currency).value)
            for method in available_payment_methods(currency)
        ],
    )

"""Promo code validation endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_db, get_optional_user
from safari_ledger.models.user import User
from safari_ledger.schemas.promo import PromoValidateRequest, PromoValidateResponse
from safari_ledger.services.promo_service import promo_service

router = APIRouter()


@router.post(
    "/validate",
    response_model=PromoValidateResponse,
    response_model_exclude_none=True,
)
async def validate_promo_code(
    data: PromoValidateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User | None, Depends(get_optional_user)],
) -> PromoValidateResponse:
    """Check a promo code for a tour and amount. Never records usage."""
    result = await promo_service.validate_promo_code(
        db,
        code=data.code,
        tour_id=data.tour_id,
        booking_amount=data.booking_amount,
        user_id=current_user.id if current_user else None,
    )
    return PromoValidateResponse(
        valid=result.valid,
        discount_amount=result.discount_amount,
        message=result.message,
    )

"""Agent dashboard endpoints: balance and promo codes."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_current_agent, get_db
from safari_ledger.models.agent import Agent
from safari_ledger.schemas.agent import BalanceResponse
from safari_ledger.schemas.promo import PromoCodeCreate, PromoCodeResponse
from safari_ledger.services.promo_service import promo_service
from safari_ledger.services.withdrawal_service import withdrawal_service

router = APIRouter()


@router.get("/balance", response_model=BalanceResponse)
async def get_balance(
    agent: Annotated[Agent, Depends(get_current_agent)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Earnings and withdrawal overview, computed from the ledger rows."""
    return await withdrawal_service.get_balance_overview(db, agent)


# ============ PROMO CODES ============


@router.get("/promo-codes", response_model=list[PromoCodeResponse])
async def list_promo_codes(
    agent: Annotated[Agent, Depends(get_current_agent)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[PromoCodeResponse]:
    """List the agent's promo codes with usage counts."""
    rows = await promo_service.list_promo_codes(db, agent.id)
    responses = []
    for promo, usage_count in rows:
        response = PromoCodeResponse.model_validate(promo)
        response.usage_count = usage_count
        responses.append(response)
    return responses


@router.post("/promo-codes", response_model=PromoCodeResponse, status_code=status.HTTP_201_CREATED)
async def create_promo_code(
    data: PromoCodeCreate,
    agent: Annotated[Agent, Depends(get_current_agent)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PromoCodeResponse:
    """Create a promo code for the agent's tours."""
    promo = await promo_service.create_promo_code(
        db,
        agent=agent,
        code=data.code,
        discount_type=data.discount_type,
        discount_value=data.discount_value,
        min_booking_amount=data.min_booking_amount,
        max_discount_amount=data.max_discount_amount,
        max_uses=data.max_uses,
        uses_per_user=data.uses_per_user,
        valid_from=data.valid_from,
        valid_until=data.valid_until,
        tour_ids=data.tour_ids,
    )
    return PromoCodeResponse.model_validate(promo)

"""Agent withdrawal endpoints."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_current_agent, get_db
from safari_ledger.domain.withdrawal_state import WithdrawalStatus
from safari_ledger.models.agent import Agent
from safari_ledger.models.withdrawal import WithdrawalRequest
from safari_ledger.schemas.common import PageMeta
from safari_ledger.schemas.withdrawal import (
    WithdrawalCreate,
    WithdrawalListResponse,
    WithdrawalResponse,
)
from safari_ledger.services.notification_service import notification_service
from safari_ledger.services.withdrawal_service import WithdrawalDestination, withdrawal_service

router = APIRouter()


def withdrawal_payload(withdrawal: WithdrawalRequest) -> dict:
    """Notification payload for withdrawal lifecycle events."""
    return {
        "withdrawal_id": str(withdrawal.id),
        "agent_id": str(withdrawal.agent_id),
        "amount": str(withdrawal.amount),
        "currency": withdrawal.currency,
        "status": withdrawal.status.value,
    }


@router.post("", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
async def request_withdrawal(
    data: WithdrawalCreate,
    background_tasks: BackgroundTasks,
    agent: Annotated[Agent, Depends(get_current_agent)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WithdrawalResponse:
    """Request a withdrawal of available earnings."""
    withdrawal = await withdrawal_service.request_withdrawal(
        db,
        agent_id=agent.id,
        amount=data.amount,
        currency=data.currency,
        method=data.method,
        destination=WithdrawalDestination(
            mpesa_phone=data.mpesa_phone,
            bank_name=data.bank_name,
            account_number=data.account_number,
            account_name=data.account_name,
        ),
    )
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.WITHDRAWAL_REQUESTED,
        withdrawal_payload(withdrawal),
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.get("", response_model=WithdrawalListResponse)
async def get_my_withdrawals(
    agent: Annotated[Agent, Depends(get_current_agent)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: WithdrawalStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
) -> WithdrawalListResponse:
    """Get the agent's withdrawal history."""
    withdrawals, total = await withdrawal_service.list_withdrawals(
        db, agent_id=agent.id, status=status_filter, page=page, page_size=page_size
    )
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.from_model(w) for w in withdrawals],
        meta=PageMeta(total=total, page=page, page_size=page_size),
    )

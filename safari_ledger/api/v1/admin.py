"""Admin endpoints for the ledger back office."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.api.deps import get_current_admin, get_db
from safari_ledger.api.v1.withdrawals import withdrawal_payload
from safari_ledger.core.exceptions import (
    AmountMismatch,
    DuplicateSettlement,
    NotFoundError,
    TerminalStateSettlement,
)
from safari_ledger.domain.withdrawal_state import WithdrawalStatus
from safari_ledger.models.admin import AuditAction, AuditLog
from safari_ledger.models.agent import Agent, CommissionTier
from safari_ledger.models.user import User
from safari_ledger.schemas.agent import (
    AgentCommissionResponse,
    AgentCommissionUpdate,
    CommissionTierCreate,
    CommissionTierResponse,
    CommissionTierUpdate,
)
from safari_ledger.schemas.audit import AuditLogListResponse, AuditLogResponse
from safari_ledger.schemas.common import PageMeta
from safari_ledger.schemas.payment import ManualSettlementRequest, SettlementResponse
from safari_ledger.schemas.withdrawal import (
    WithdrawalApprove,
    WithdrawalListResponse,
    WithdrawalProcess,
    WithdrawalReject,
    WithdrawalResponse,
)
from safari_ledger.services.audit_service import audit_service
from safari_ledger.services.notification_service import notification_service
from safari_ledger.services.settlement_service import settlement_service
from safari_ledger.services.withdrawal_service import withdrawal_service

router = APIRouter()

INTEGRITY_AUDIT_ACTIONS = {
    AmountMismatch: AuditAction.PAYMENT_AMOUNT_MISMATCH,
    TerminalStateSettlement: AuditAction.PAYMENT_TERMINAL_STATE,
    DuplicateSettlement: AuditAction.PAYMENT_DUPLICATE_CAPTURE,
}


# ============ WITHDRAWALS ============


@router.get("/withdrawals", response_model=WithdrawalListResponse)
async def get_withdrawals(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status_filter: WithdrawalStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100, alias="pageSize"),
) -> WithdrawalListResponse:
    """List withdrawal requests across all agents."""
    withdrawals, total = await withdrawal_service.list_withdrawals(
        db, status=status_filter, page=page, page_size=page_size
    )
    return WithdrawalListResponse(
        withdrawals=[WithdrawalResponse.from_model(w) for w in withdrawals],
        meta=PageMeta(total=total, page=page, page_size=page_size),
    )


@router.post("/withdrawals/{withdrawal_id}/approve", response_model=WithdrawalResponse)
async def approve_withdrawal(
    withdrawal_id: UUID,
    background_tasks: BackgroundTasks,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    data: WithdrawalApprove | None = None,
) -> WithdrawalResponse:
    """Approve a pending withdrawal after re-checking the agent's balance."""
    withdrawal = await withdrawal_service.approve(
        db, withdrawal_id, admin.id, notes=data.notes if data else None
    )
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.WITHDRAWAL_APPROVED,
        withdrawal_payload(withdrawal),
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/start-processing", response_model=WithdrawalResponse)
async def start_processing_withdrawal(
    withdrawal_id: UUID,
    background_tasks: BackgroundTasks,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WithdrawalResponse:
    """Mark an approved withdrawal as being disbursed."""
    withdrawal = await withdrawal_service.start_processing(db, withdrawal_id, admin.id)
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.WITHDRAWAL_PROCESSING,
        withdrawal_payload(withdrawal),
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/process", response_model=WithdrawalResponse)
async def process_withdrawal(
    withdrawal_id: UUID,
    data: WithdrawalProcess,
    background_tasks: BackgroundTasks,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WithdrawalResponse:
    """Record the disbursement reference and complete the withdrawal."""
    withdrawal = await withdrawal_service.process(
        db, withdrawal_id, admin.id, transaction_ref=data.transaction_ref, notes=data.notes
    )
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.WITHDRAWAL_COMPLETED,
        {**withdrawal_payload(withdrawal), "transaction_ref": withdrawal.transaction_ref},
    )
    return WithdrawalResponse.from_model(withdrawal)


@router.post("/withdrawals/{withdrawal_id}/reject", response_model=WithdrawalResponse)
async def reject_withdrawal(
    withdrawal_id: UUID,
    data: WithdrawalReject,
    background_tasks: BackgroundTasks,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WithdrawalResponse:
    """Reject a pending withdrawal, releasing the reserved amount."""
    withdrawal = await withdrawal_service.reject(db, withdrawal_id, admin.id, reason=data.reason)
    await db.commit()

    background_tasks.add_task(
        notification_service.enqueue,
        notification_service.WITHDRAWAL_REJECTED,
        {**withdrawal_payload(withdrawal), "reason": withdrawal.rejection_reason},
    )
    return WithdrawalResponse.from_model(withdrawal)


# ============ SETTLEMENT ============


@router.post("/bookings/{booking_id}/settle", response_model=SettlementResponse)
async def settle_booking(
    booking_id: UUID,
    data: ManualSettlementRequest,
    background_tasks: BackgroundTasks,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SettlementResponse:
    """Reconcile an off-gateway payment such as a bank transfer."""
    admin_id = admin.id
    try:
        result = await settlement_service.settle(
            db,
            booking_id=booking_id,
            payment_amount=data.amount,
            external_ref=data.transaction_ref,
            gateway="manual",
            method=data.method,
            actor_id=admin_id,
        )
    except (AmountMismatch, TerminalStateSettlement, DuplicateSettlement) as e:
        # Rollback expires loaded rows; only plain values are read below
        await db.rollback()
        await audit_service.record_integrity_failure(
            db,
            INTEGRITY_AUDIT_ACTIONS[type(e)],
            booking_id,
            {"source": "manual", "transaction_ref": data.transaction_ref, "amount": data.amount},
            user_id=admin_id,
        )
        raise
    await db.commit()

    booking = result.booking
    if not result.already_settled:
        background_tasks.add_task(
            notification_service.enqueue,
            notification_service.PAYMENT_RECEIVED,
            {
                "booking_id": str(booking.id),
                "booking_reference": booking.booking_reference,
                "user_id": str(booking.user_id),
                "agent_id": str(booking.agent_id),
                "amount": str(booking.total_amount),
                "currency": booking.currency,
            },
        )

    return SettlementResponse(
        booking_id=booking.id,
        booking_status=booking.status,
        payment_status=booking.payment_status,
        already_settled=result.already_settled,
        total_amount=booking.total_amount,
        commission_rate=booking.commission_rate,
        platform_commission=booking.platform_commission,
        agent_earnings=booking.agent_earnings,
        payment_id=result.payment.id if result.payment else None,
    )


# ============ COMMISSION ============


async def _get_tier(db: AsyncSession, tier_id: UUID) -> CommissionTier:
    result = await db.execute(select(CommissionTier).where(CommissionTier.id == tier_id))
    tier = result.scalar_one_or_none()
    if not tier:
        raise NotFoundError("Commission tier", str(tier_id))
    return tier


def _tier_values(tier: CommissionTier) -> dict:
    return {
        "name": tier.name,
        "min_bookings": tier.min_bookings,
        "min_revenue": tier.min_revenue,
        "commission_rate": tier.commission_rate,
        "is_active": tier.is_active,
    }


@router.get("/commission-tiers", response_model=list[CommissionTierResponse])
async def get_commission_tiers(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[CommissionTier]:
    """List tiers in evaluation order (highest thresholds first)."""
    result = await db.execute(
        select(CommissionTier).order_by(
            CommissionTier.min_bookings.desc(),
            CommissionTier.min_revenue.desc(),
        )
    )
    return list(result.scalars().all())


@router.post(
    "/commission-tiers",
    response_model=CommissionTierResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_commission_tier(
    data: CommissionTierCreate,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CommissionTier:
    """Create a commission tier."""
    tier = CommissionTier(**data.model_dump())
    db.add(tier)
    await db.flush()

    await audit_service.log_financial_action(
        db=db,
        user_id=admin.id,
        action=AuditAction.COMMISSION_TIER_CREATED,
        resource_type="commission_tier",
        resource_id=tier.id,
        new_values=_tier_values(tier),
    )
    return tier


@router.patch("/commission-tiers/{tier_id}", response_model=CommissionTierResponse)
async def update_commission_tier(
    tier_id: UUID,
    data: CommissionTierUpdate,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> CommissionTier:
    """Update a commission tier. Only affects future settlements."""
    tier = await _get_tier(db, tier_id)
    old_values = _tier_values(tier)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(tier, field, value)
    await db.flush()

    await audit_service.log_financial_action(
        db=db,
        user_id=admin.id,
        action=AuditAction.COMMISSION_TIER_UPDATED,
        resource_type="commission_tier",
        resource_id=tier.id,
        old_values=old_values,
        new_values=_tier_values(tier),
    )
    return tier


@router.delete("/commission-tiers/{tier_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_commission_tier(
    tier_id: UUID,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete a commission tier."""
    tier = await _get_tier(db, tier_id)

    await audit_service.log_financial_action(
        db=db,
        user_id=admin.id,
        action=AuditAction.COMMISSION_TIER_DELETED,
        resource_type="commission_tier",
        resource_id=tier.id,
        old_values=_tier_values(tier),
    )
    await db.delete(tier)


@router.patch("/agents/{agent_id}/commission", response_model=AgentCommissionResponse)
async def update_agent_commission(
    agent_id: UUID,
    data: AgentCommissionUpdate,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Agent:
    """Set an agent's flat commission rate (0-50%)."""
    result = await db.execute(select(Agent).where(Agent.id == agent_id))
    agent = result.scalar_one_or_none()
    if not agent:
        raise NotFoundError("Agent", str(agent_id))

    old_rate = agent.commission_rate
    agent.commission_rate = data.commission_rate

    await audit_service.log_financial_action(
        db=db,
        user_id=admin.id,
        action=AuditAction.COMMISSION_UPDATED,
        resource_type="agent",
        resource_id=agent.id,
        old_values={"commission_rate": old_rate},
        new_values={"commission_rate": data.commission_rate},
    )
    return agent


# ============ AUDIT LOGS ============


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def get_audit_logs(
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    action: str | None = Query(default=None),
    resource_type: str | None = Query(default=None, alias="resourceType"),
    resource_id: UUID | None = Query(default=None, alias="resourceId"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100, alias="pageSize"),
) -> AuditLogListResponse:
    """Get audit logs."""
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    if resource_type:
        query = query.where(AuditLog.resource_type == resource_type)
    if resource_id:
        query = query.where(AuditLog.resource_id == resource_id)

    # Count
    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar() or 0

    # Pagination
    offset = (page - 1) * page_size
    query = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(page_size)

    result = await db.execute(query)
    logs = result.scalars().all()

    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        meta=PageMeta(total=total, page=page, page_size=page_size),
    )

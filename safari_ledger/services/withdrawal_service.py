"""Agent withdrawal ledger.

CRITICAL BUSINESS LOGIC:
- The available balance is always derived from rows, never cached:
    available = settled earnings - completed withdrawals - reserved withdrawals
  where reserved means PENDING, APPROVED or PROCESSING
- Request and approval lock the agent row so two concurrent requests
  cannot both pass the balance check
- Approval re-checks the balance excluding the request being approved
- Rejection frees the reserved amount immediately
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.config import settings
from safari_ledger.core.encryption import get_encryption_service
from safari_ledger.core.exceptions import (
    AuthorizationError,
    InsufficientBalance,
    NotFoundError,
    ValidationError,
)
from safari_ledger.domain.booking_state import BookingStatus
from safari_ledger.domain.payment_state import PaymentStatus
from safari_ledger.domain.pricing import to_money
from safari_ledger.domain.withdrawal_state import (
    RESERVED_STATUSES,
    WithdrawalMethod,
    WithdrawalStatus,
    assert_withdrawal_transition,
)
from safari_ledger.models.admin import AuditAction
from safari_ledger.models.agent import AccountStatus, Agent
from safari_ledger.models.booking import Booking
from safari_ledger.models.withdrawal import WithdrawalRequest
from safari_ledger.services.audit_service import audit_service
from safari_ledger.utils.dates import month_start, utcnow

logger = logging.getLogger(__name__)

MPESA_PHONE_PATTERN = re.compile(r"^(\+?254|0)[17]\d{8}$")
ZERO = Decimal("0.00")

PENDING_EARNING_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.PAID,
    BookingStatus.IN_PROGRESS,
)


@dataclass(frozen=True)
class BalanceSummary:
    total_earnings: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal

    @property
    def available(self) -> Decimal:
        return self.total_earnings - self.total_withdrawn - self.pending_withdrawals


@dataclass(frozen=True)
class WithdrawalDestination:
    """Payout destination as submitted by the agent."""

    mpesa_phone: str | None = None
    bank_name: str | None = None
    account_number: str | None = None
    account_name: str | None = None


def validate_destination(method: WithdrawalMethod, destination: WithdrawalDestination) -> None:
    """Check the destination details required by the withdrawal method."""
    if method == WithdrawalMethod.MPESA:
        phone = (destination.mpesa_phone or "").replace(" ", "")
        if not MPESA_PHONE_PATTERN.match(phone):
            raise ValidationError("Valid M-Pesa phone number is required")
    elif method == WithdrawalMethod.BANK:
        missing = [
            name
            for name in ("bank_name", "account_number", "account_name")
            if not (getattr(destination, name) or "").strip()
        ]
        if missing:
            raise ValidationError(f"Bank transfer requires: {', '.join(missing)}")
    else:
        raise ValidationError(f"Unsupported withdrawal method: {method}")


class WithdrawalService:
    """Service for agent balances and withdrawal lifecycle."""

    # ============ BALANCE ============

    async def get_balance_summary(
        self,
        db: AsyncSession,
        agent_id: UUID,
        exclude_withdrawal_id: UUID | None = None,
    ) -> BalanceSummary:
        """Derive the agent's balance from bookings and withdrawals.

        Args:
            db: Database session
            agent_id: Agent whose balance is computed
            exclude_withdrawal_id: Request to leave out of the reserved sum
                (used when re-checking a request on approval)
        """
        earnings_result = await db.execute(
            select(func.coalesce(func.sum(Booking.agent_earnings), 0)).where(
                Booking.agent_id == agent_id,
                Booking.payment_status == PaymentStatus.COMPLETED,
            )
        )
        withdrawn_result = await db.execute(
            select(func.coalesce(func.sum(WithdrawalRequest.amount), 0)).where(
                WithdrawalRequest.agent_id == agent_id,
                WithdrawalRequest.status == WithdrawalStatus.COMPLETED,
            )
        )
        reserved_query = select(func.coalesce(func.sum(WithdrawalRequest.amount), 0)).where(
            WithdrawalRequest.agent_id == agent_id,
            WithdrawalRequest.status.in_(RESERVED_STATUSES),
        )
        if exclude_withdrawal_id is not None:
            reserved_query = reserved_query.where(WithdrawalRequest.id != exclude_withdrawal_id)
        reserved_result = await db.execute(reserved_query)

        return BalanceSummary(
            total_earnings=to_money(earnings_result.scalar() or 0),
            total_withdrawn=to_money(withdrawn_result.scalar() or 0),
            pending_withdrawals=to_money(reserved_result.scalar() or 0),
        )

    async def get_available_balance(self, db: AsyncSession, agent_id: UUID) -> Decimal:
        summary = await self.get_balance_summary(db, agent_id)
        return summary.available

    async def get_balance_overview(self, db: AsyncSession, agent: Agent) -> dict[str, Any]:
        """Dashboard view of an agent's earnings and withdrawals."""
        summary = await self.get_balance_summary(db, agent.id)

        monthly_result = await db.execute(
            select(func.coalesce(func.sum(Booking.agent_earnings), 0)).where(
                Booking.agent_id == agent.id,
                Booking.payment_status == PaymentStatus.COMPLETED,
                Booking.created_at >= month_start(),
            )
        )
        pending_earnings_result = await db.execute(
            select(func.coalesce(func.sum(Booking.agent_earnings), 0)).where(
                Booking.agent_id == agent.id,
                Booking.payment_status == PaymentStatus.COMPLETED,
                Booking.status.in_(PENDING_EARNING_STATUSES),
            )
        )
        completed_result = await db.execute(
            select(func.count(Booking.id)).where(
                Booking.agent_id == agent.id,
                Booking.status == BookingStatus.COMPLETED,
            )
        )
        settled_result = await db.execute(
            select(func.count(Booking.id)).where(
                Booking.agent_id == agent.id,
                Booking.payment_status == PaymentStatus.COMPLETED,
            )
        )
        withdrawal_count_result = await db.execute(
            select(func.count(WithdrawalRequest.id)).where(WithdrawalRequest.agent_id == agent.id)
        )

        return {
            "total_earnings": summary.total_earnings,
            "monthly_earnings": to_money(monthly_result.scalar() or 0),
            "available_balance": summary.available,
            "pending_withdrawals": summary.pending_withdrawals,
            "total_withdrawn": summary.total_withdrawn,
            "pending_earnings": to_money(pending_earnings_result.scalar() or 0),
            "currency": "USD",
            "stats": {
                "completed_bookings": completed_result.scalar() or 0,
                "settled_bookings": settled_result.scalar() or 0,
                "withdrawal_count": withdrawal_count_result.scalar() or 0,
            },
        }

    async def _lock_agent(self, db: AsyncSession, agent_id: UUID) -> Agent:
        """Take the per-agent lock for balance-affecting operations."""
        result = await db.execute(select(Agent).where(Agent.id == agent_id).with_for_update())
        agent = result.scalar_one_or_none()
        if not agent:
            raise NotFoundError("Agent", str(agent_id))
        return agent

    async def _get_withdrawal(
        self, db: AsyncSession, withdrawal_id: UUID, for_update: bool = False
    ) -> WithdrawalRequest:
        query = select(WithdrawalRequest).where(WithdrawalRequest.id == withdrawal_id)
        if for_update:
            # Transitions re-read the committed status under the row lock
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        withdrawal = result.scalar_one_or_none()
        if not withdrawal:
            raise NotFoundError("Withdrawal request", str(withdrawal_id))
        return withdrawal

    # ============ AGENT OPERATIONS ============

    async def request_withdrawal(
        self,
        db: AsyncSession,
        agent_id: UUID,
        amount: Decimal,
        currency: str,
        method: WithdrawalMethod,
        destination: WithdrawalDestination,
        actor_id: UUID | None = None,
    ) -> WithdrawalRequest:
        """Create a PENDING withdrawal reserving part of the available balance.

        Raises:
            AuthorizationError: Agent account is not active
            ValidationError: Bad amount, currency or destination
            InsufficientBalance: Amount exceeds the available balance
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Withdrawal amount must be positive")
        if amount < settings.minimum_withdrawal_amount:
            raise ValidationError(
                f"Minimum withdrawal amount is ${settings.minimum_withdrawal_amount:.2f}"
            )
        currency = currency.upper()
        if currency not in settings.withdrawal_currencies:
            raise ValidationError(f"Unsupported withdrawal currency: {currency}")
        validate_destination(method, destination)

        agent = await self._lock_agent(db, agent_id)
        if agent.status != AccountStatus.ACTIVE:
            raise AuthorizationError("Agent account is not active")

        summary = await self.get_balance_summary(db, agent.id)
        if amount > summary.available:
            logger.info(
                f"Withdrawal of {amount} refused for agent {agent.id}: available {summary.available}"
            )
            raise InsufficientBalance(available=summary.available)

        withdrawal = WithdrawalRequest(
            agent_id=agent.id,
            amount=amount,
            currency=currency,
            method=method,
            status=WithdrawalStatus.PENDING,
        )
        if method == WithdrawalMethod.MPESA:
            withdrawal.mpesa_phone = destination.mpesa_phone.replace(" ", "")
        else:
            withdrawal.bank_name = destination.bank_name.strip()
            withdrawal.account_number_encrypted = get_encryption_service().encrypt(
                destination.account_number.strip()
            )
            withdrawal.account_name = destination.account_name.strip()
        db.add(withdrawal)
        await db.flush()

        await audit_service.log_withdrawal_action(
            db=db,
            user_id=actor_id or agent.user_id,
            action=AuditAction.WITHDRAWAL_REQUESTED,
            withdrawal_id=withdrawal.id,
            old_status=None,
            new_status=WithdrawalStatus.PENDING.value,
            amount=amount,
            agent_id=agent.id,
            extra={"method": method.value, "currency": currency},
        )

        logger.info(f"Withdrawal {withdrawal.id} requested by agent {agent.id}: {amount} {currency}")
        return withdrawal

    async def list_withdrawals(
        self,
        db: AsyncSession,
        agent_id: UUID | None = None,
        status: WithdrawalStatus | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[WithdrawalRequest], int]:
        """Page through withdrawal requests, newest first."""
        query = select(WithdrawalRequest)
        if agent_id is not None:
            query = query.where(WithdrawalRequest.agent_id == agent_id)
        if status is not None:
            query = query.where(WithdrawalRequest.status == status)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        offset = (page - 1) * page_size
        query = query.order_by(WithdrawalRequest.created_at.desc()).offset(offset).limit(page_size)
        result = await db.execute(query)
        return list(result.scalars().all()), total

    # ============ ADMIN OPERATIONS ============

    async def approve(
        self,
        db: AsyncSession,
        withdrawal_id: UUID,
        admin_id: UUID,
        notes: str | None = None,
    ) -> WithdrawalRequest:
        """PENDING -> APPROVED after re-checking the balance under the agent lock."""
        withdrawal = await self._get_withdrawal(db, withdrawal_id)
        assert_withdrawal_transition("approve", withdrawal.status, WithdrawalStatus.APPROVED)

        agent = await self._lock_agent(db, withdrawal.agent_id)
        withdrawal = await self._get_withdrawal(db, withdrawal_id, for_update=True)
        assert_withdrawal_transition("approve", withdrawal.status, WithdrawalStatus.APPROVED)

        summary = await self.get_balance_summary(db, agent.id, exclude_withdrawal_id=withdrawal.id)
        if withdrawal.amount > summary.available:
            logger.warning(
                f"Approval of withdrawal {withdrawal.id} refused: amount {withdrawal.amount} "
                f"exceeds available {summary.available}"
            )
            raise InsufficientBalance(available=summary.available)

        old_status = withdrawal.status
        withdrawal.status = WithdrawalStatus.APPROVED
        withdrawal.processed_by = admin_id
        withdrawal.processed_at = utcnow()
        if notes:
            withdrawal.notes = notes

        await audit_service.log_withdrawal_action(
            db=db,
            user_id=admin_id,
            action=AuditAction.WITHDRAWAL_APPROVED,
            withdrawal_id=withdrawal.id,
            old_status=old_status.value,
            new_status=withdrawal.status.value,
            amount=withdrawal.amount,
            agent_id=agent.id,
        )
        await db.flush()

        logger.info(f"Withdrawal {withdrawal.id} approved by {admin_id}")
        return withdrawal

    async def start_processing(
        self,
        db: AsyncSession,
        withdrawal_id: UUID,
        admin_id: UUID,
    ) -> WithdrawalRequest:
        """APPROVED -> PROCESSING while the disbursement is in flight."""
        withdrawal = await self._get_withdrawal(db, withdrawal_id, for_update=True)
        assert_withdrawal_transition("start processing", withdrawal.status, WithdrawalStatus.PROCESSING)

        old_status = withdrawal.status
        withdrawal.status = WithdrawalStatus.PROCESSING
        withdrawal.processed_by = admin_id

        await audit_service.log_withdrawal_action(
            db=db,
            user_id=admin_id,
            action=AuditAction.WITHDRAWAL_PROCESSING,
            withdrawal_id=withdrawal.id,
            old_status=old_status.value,
            new_status=withdrawal.status.value,
            amount=withdrawal.amount,
            agent_id=withdrawal.agent_id,
        )
        await db.flush()
        return withdrawal

    async def process(
        self,
        db: AsyncSession,
        withdrawal_id: UUID,
        admin_id: UUID,
        transaction_ref: str,
        notes: str | None = None,
    ) -> WithdrawalRequest:
        """Mark the payout as sent. Irreversible."""
        transaction_ref = (transaction_ref or "").strip()
        if not 1 <= len(transaction_ref) <= 100:
            raise ValidationError("Transaction reference must be 1-100 characters")

        withdrawal = await self._get_withdrawal(db, withdrawal_id, for_update=True)
        assert_withdrawal_transition("process", withdrawal.status, WithdrawalStatus.COMPLETED)

        old_status = withdrawal.status
        withdrawal.status = WithdrawalStatus.COMPLETED
        withdrawal.transaction_ref = transaction_ref
        withdrawal.processed_by = admin_id
        withdrawal.processed_at = utcnow()
        if notes:
            withdrawal.notes = notes

        await audit_service.log_withdrawal_action(
            db=db,
            user_id=admin_id,
            action=AuditAction.WITHDRAWAL_COMPLETED,
            withdrawal_id=withdrawal.id,
            old_status=old_status.value,
            new_status=withdrawal.status.value,
            amount=withdrawal.amount,
            agent_id=withdrawal.agent_id,
            extra={"transaction_ref": transaction_ref},
        )
        await db.flush()

        logger.info(f"Withdrawal {withdrawal.id} completed with ref {transaction_ref}")
        return withdrawal

    async def reject(
        self,
        db: AsyncSession,
        withdrawal_id: UUID,
        admin_id: UUID,
        reason: str,
    ) -> WithdrawalRequest:
        """PENDING -> REJECTED, releasing the reserved amount."""
        reason = (reason or "").strip()
        if not 10 <= len(reason) <= 500:
            raise ValidationError("Rejection reason must be 10-500 characters")

        withdrawal = await self._get_withdrawal(db, withdrawal_id, for_update=True)
        assert_withdrawal_transition("reject", withdrawal.status, WithdrawalStatus.REJECTED)

        old_status = withdrawal.status
        withdrawal.status = WithdrawalStatus.REJECTED
        withdrawal.rejection_reason = reason
        withdrawal.processed_by = admin_id
        withdrawal.processed_at = utcnow()

        await audit_service.log_withdrawal_action(
            db=db,
            user_id=admin_id,
            action=AuditAction.WITHDRAWAL_REJECTED,
            withdrawal_id=withdrawal.id,
            old_status=old_status.value,
            new_status=withdrawal.status.value,
            amount=withdrawal.amount,
            agent_id=withdrawal.agent_id,
            extra={"reason": reason},
        )
        await db.flush()

        logger.info(f"Withdrawal {withdrawal.id} rejected by {admin_id}")
        return withdrawal


# Singleton instance
withdrawal_service = WithdrawalService()

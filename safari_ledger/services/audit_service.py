"""Financial audit trail service."""

import logging
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from safari_ledger.models.admin import AuditAction, AuditLog

logger = logging.getLogger(__name__)


def _jsonable(values: dict[str, Any] | None) -> dict[str, Any] | None:
    """Make Decimal/UUID/enum values safe for the JSON column."""
    if values is None:
        return None
    out: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, Enum):
            out[key] = value.value
        elif isinstance(value, (Decimal, UUID)):
            out[key] = str(value)
        else:
            out[key] = value
    return out


class AuditService:
    """Service for immutable financial audit logging."""

    async def log_financial_action(
        self,
        db: AsyncSession,
        user_id: UUID | None,
        action: AuditAction | str,
        resource_type: str,
        resource_id: UUID | None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> AuditLog:
        """Log a financial action (immutable).

        Args:
            db: Database session
            user_id: User performing the action (None for gateway callbacks)
            action: Action name
            resource_type: Resource type (e.g., "booking", "withdrawal")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state
            ip_address: Client IP
            user_agent: Client user agent

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            user_id=user_id,
            action=action.value if isinstance(action, AuditAction) else action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(audit)
        return audit

    async def log_withdrawal_action(
        self,
        db: AsyncSession,
        user_id: UUID,
        action: AuditAction,
        withdrawal_id: UUID,
        old_status: str | None,
        new_status: str,
        amount: Decimal,
        agent_id: UUID,
        extra: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log withdrawal lifecycle action."""
        return await self.log_financial_action(
            db=db,
            user_id=user_id,
            action=action,
            resource_type="withdrawal",
            resource_id=withdrawal_id,
            old_values={"status": old_status} if old_status else None,
            new_values={"status": new_status, "amount": amount, "agent_id": agent_id, **(extra or {})},
        )

    async def log_booking_action(
        self,
        db: AsyncSession,
        user_id: UUID | None,
        action: AuditAction,
        booking_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Log booking status or payment change."""
        return await self.log_financial_action(
            db=db,
            user_id=user_id,
            action=action,
            resource_type="booking",
            resource_id=booking_id,
            old_values=old_values,
            new_values=new_values,
        )

    async def record_integrity_failure(
        self,
        db: AsyncSession,
        action: AuditAction,
        booking_id: UUID | None,
        details: dict[str, Any],
        user_id: UUID | None = None,
    ) -> AuditLog:
        """Record a discrepancy for operator review and commit it.

        Callers roll back their failed unit of work first so the entry
        survives independently of it.
        """
        logger.error(f"Ledger integrity failure {action.value} booking={booking_id}: {details}")
        audit = await self.log_financial_action(
            db=db,
            user_id=user_id,
            action=action,
            resource_type="booking",
            resource_id=booking_id,
            new_values=details,
        )
        await db.commit()
        return audit


# Singleton instance
audit_service = AuditService()

"""Withdrawal request schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field

from safari_ledger.core.encryption import get_encryption_service, mask_account_number
from safari_ledger.domain.withdrawal_state import WithdrawalMethod, WithdrawalStatus
from safari_ledger.models.withdrawal import WithdrawalRequest
from safari_ledger.schemas.common import CamelModel, Money, PageMeta


class WithdrawalCreate(CamelModel):
    """Schema for an agent requesting a withdrawal."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    method: WithdrawalMethod
    mpesa_phone: str | None = Field(None, max_length=20)
    bank_name: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=50)
    account_name: str | None = Field(None, max_length=200)


class WithdrawalResponse(CamelModel):
    """Schema for withdrawal response. Account numbers are always masked."""

    id: UUID
    agent_id: UUID
    amount: Money
    currency: str
    method: WithdrawalMethod
    mpesa_phone: str | None = None
    bank_name: str | None = None
    account_number_masked: str | None = None
    account_name: str | None = None
    status: WithdrawalStatus
    processed_by: UUID | None = None
    processed_at: datetime | None = None
    transaction_ref: str | None = None
    rejection_reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, withdrawal: WithdrawalRequest) -> "WithdrawalResponse":
        masked = None
        if withdrawal.account_number_encrypted:
            account_number = get_encryption_service().decrypt(withdrawal.account_number_encrypted)
            masked = mask_account_number(account_number)
        response = cls.model_validate(withdrawal)
        response.account_number_masked = masked
        return response


class WithdrawalListResponse(CamelModel):
    withdrawals: list[WithdrawalResponse]
    meta: PageMeta


class WithdrawalApprove(CamelModel):
    notes: str | None = Field(None, max_length=1000)


class WithdrawalProcess(CamelModel):
    transaction_ref: str = Field(..., min_length=1, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class WithdrawalReject(CamelModel):
    reason: str = Field(..., min_length=10, max_length=500)

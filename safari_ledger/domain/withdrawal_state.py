"""Agent withdrawal state machine.

States:
- PENDING: Requested by the agent, amount reserved
- APPROVED: Admin re-verified the balance
- PROCESSING: Disbursement in flight
- COMPLETED: Money sent (irreversible)
- REJECTED: Admin declined, amount released
"""

from enum import Enum

from safari_ledger.core.exceptions import InvalidWithdrawalStatus


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class WithdrawalMethod(str, Enum):
    MPESA = "MPESA"
    BANK = "BANK"


WITHDRAWAL_TRANSITIONS = {
    WithdrawalStatus.PENDING: {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED},
    WithdrawalStatus.APPROVED: {WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED},
    WithdrawalStatus.PROCESSING: {WithdrawalStatus.COMPLETED},
    WithdrawalStatus.COMPLETED: set(),
    WithdrawalStatus.REJECTED: set(),
}

# Amounts in these statuses are reserved against the agent's balance
RESERVED_STATUSES = (
    WithdrawalStatus.PENDING,
    WithdrawalStatus.APPROVED,
    WithdrawalStatus.PROCESSING,
)
TERMINAL_STATUSES = frozenset({WithdrawalStatus.COMPLETED, WithdrawalStatus.REJECTED})


def assert_withdrawal_transition(action: str, current: WithdrawalStatus, target: WithdrawalStatus) -> None:
    """Validate withdrawal state transition.

    Args:
        action: Verb used in the error message ("approve", "process", ...)
        current: Current withdrawal status
        target: Target withdrawal status

    Raises:
        InvalidWithdrawalStatus: If transition is not allowed
    """
    current = WithdrawalStatus(current)
    allowed = WITHDRAWAL_TRANSITIONS.get(current, set())
    if WithdrawalStatus(target) not in allowed:
        raise InvalidWithdrawalStatus(action, current.value)

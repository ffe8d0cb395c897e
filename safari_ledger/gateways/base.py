"""Base payment gateway interface.

All gateway adapters must implement this interface.
Business logic should NOT live in adapters - only gateway communication.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class GatewayType(str, Enum):
    """Supported payment gateways."""

    PESAPAL = "pesapal"
    FLUTTERWAVE = "flutterwave"


class GatewayPaymentState(str, Enum):
    """Gateway-neutral outcome of a transaction."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class PaymentResult:
    """Result of a payment operation."""

    success: bool
    transaction_id: str | None = None
    redirect_url: str | None = None
    state: GatewayPaymentState = GatewayPaymentState.PENDING
    amount: Decimal | None = None
    currency: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class GatewayEvent:
    """Normalized webhook notification."""

    gateway: GatewayType
    merchant_reference: str
    state: GatewayPaymentState
    transaction_id: str | None = None
    amount: Decimal | None = None
    currency: str | None = None
    raw_payload: dict | None = None


class PaymentGateway(ABC):
    """Abstract base class for payment gateways."""

    @property
    @abstractmethod
    def gateway_type(self) -> GatewayType:
        """Return the gateway type."""

    @abstractmethod
    async def create_payment(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        description: str,
        customer: dict | None = None,
    ) -> PaymentResult:
        """Submit an order to the gateway.

        Args:
            amount: Amount in major currency units
            currency: ISO currency code
            reference_id: Our merchant reference for the payment
            description: Order description shown to the customer
            customer: Payer details (email, name, phone)

        Returns:
            PaymentResult with the redirect URL for the customer
        """

    @abstractmethod
    async def verify_payment(self, transaction_id: str) -> PaymentResult:
        """Fetch the authoritative status of a transaction from the gateway."""

    @abstractmethod
    async def parse_webhook(
        self,
        payload: dict,
        signature: str | None = None,
    ) -> GatewayEvent | None:
        """Verify and normalize a webhook notification.

        Returns:
            GatewayEvent, or None if the signature or payload is invalid
        """

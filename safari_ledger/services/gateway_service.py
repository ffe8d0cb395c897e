"""Payment gateway service.

Routes payment operations to the appropriate gateway adapter.
No business logic here - only gateway coordination.
"""

from decimal import Decimal

from safari_ledger.config import settings
from safari_ledger.gateways.base import (
    GatewayEvent,
    GatewayType,
    PaymentGateway,
    PaymentResult,
)
from safari_ledger.gateways.flutterwave import FlutterwaveGateway
from safari_ledger.gateways.pesapal import PesapalGateway


def _is_production() -> bool:
    """Check if running in production environment."""
    return settings.environment == "production"


def _assert_production_for_real_gateway(gateway: PaymentGateway) -> None:
    """Block live gateway operations in non-production environments.

    Pesapal is always forced onto its sandbox outside production; Flutterwave
    has no separate sandbox host so test keys must be used.

    Raises:
        RuntimeError: If attempting a live operation outside production
    """
    if _is_production():
        return
    if gateway.gateway_type == GatewayType.PESAPAL and getattr(gateway, "is_sandbox", False):
        return
    if gateway.gateway_type == GatewayType.FLUTTERWAVE:
        secret = settings.flutterwave_secret_key or ""
        if not secret or secret.startswith("FLWSECK_TEST"):
            return
    raise RuntimeError(
        f"Cannot execute live {gateway.gateway_type.value} gateway operations "
        f"in {settings.environment} environment. Set ENVIRONMENT=production or use test credentials."
    )


class GatewayService:
    """Service for managing payment gateway operations."""

    def __init__(self):
        self._gateways: dict[GatewayType, PaymentGateway] = {}

    def _get_gateway(self, gateway_type: str | GatewayType) -> PaymentGateway:
        """Get or create gateway instance."""
        gateway_type = GatewayType(gateway_type)

        if gateway_type not in self._gateways:
            if gateway_type == GatewayType.PESAPAL:
                self._gateways[gateway_type] = PesapalGateway()
            else:
                self._gateways[gateway_type] = FlutterwaveGateway()

        return self._gateways[gateway_type]

    async def create_payment(
        self,
        gateway_type: str | GatewayType,
        amount: Decimal,
        currency: str,
        reference_id: str,
        description: str,
        customer: dict | None = None,
    ) -> PaymentResult:
        """Create payment via specified gateway."""
        gateway = self._get_gateway(gateway_type)
        _assert_production_for_real_gateway(gateway)
        return await gateway.create_payment(
            amount=amount,
            currency=currency,
            reference_id=reference_id,
            description=description,
            customer=customer,
        )

    async def verify_payment(
        self,
        gateway_type: str | GatewayType,
        transaction_id: str,
    ) -> PaymentResult:
        """Verify payment status via gateway."""
        gateway = self._get_gateway(gateway_type)
        return await gateway.verify_payment(transaction_id)

    async def parse_webhook(
        self,
        gateway_type: str | GatewayType,
        payload: dict,
        signature: str | None = None,
    ) -> GatewayEvent | None:
        """Verify and normalize a webhook from gateway."""
        gateway = self._get_gateway(gateway_type)
        return await gateway.parse_webhook(payload, signature)


# Singleton instance
gateway_service = GatewayService()

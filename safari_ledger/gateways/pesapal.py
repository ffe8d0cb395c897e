"""Pesapal payment gateway adapter.

Pesapal v3 integration for M-Pesa, card and bank payments in East Africa.
Documentation: https://developer.pesapal.com/how-to-integrate/e-commerce/api-30-json/api-reference
"""

import logging
from decimal import Decimal

import httpx

from safari_ledger.config import settings
from safari_ledger.gateways.base import (
    GatewayEvent,
    GatewayPaymentState,
    GatewayType,
    PaymentGateway,
    PaymentResult,
)

logger = logging.getLogger(__name__)

# status_code values from GetTransactionStatus
_STATUS_MAP = {
    0: GatewayPaymentState.FAILED,  # INVALID
    1: GatewayPaymentState.COMPLETED,
    2: GatewayPaymentState.FAILED,
    3: GatewayPaymentState.REFUNDED,  # REVERSED
}


class PesapalGateway(PaymentGateway):
    """Pesapal payment gateway implementation."""

    def __init__(self):
        self.consumer_key = settings.pesapal_consumer_key
        self.consumer_secret = settings.pesapal_consumer_secret
        self.ipn_id = settings.pesapal_ipn_id
        self.sandbox = settings.pesapal_sandbox

        # Environment safety: force sandbox in non-production
        if settings.environment != "production":
            self.sandbox = True

        self.base_url = (
            "https://cybqa.pesapal.com/pesapalv3"
            if self.sandbox
            else "https://pay.pesapal.com/v3"
        )

    @property
    def is_sandbox(self) -> bool:
        """Explicit sandbox flag for external checks."""
        return self.sandbox

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.PESAPAL

    async def _request_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.base_url}/api/Auth/RequestToken",
            json={
                "consumer_key": self.consumer_key,
                "consumer_secret": self.consumer_secret,
            },
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        token = response.json().get("token")
        if not token:
            raise httpx.HTTPError("Pesapal did not return an access token")
        return token

    async def create_payment(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        description: str,
        customer: dict | None = None,
    ) -> PaymentResult:
        """Submit order request and return the hosted checkout URL."""
        if not self.consumer_key or not self.consumer_secret or not self.ipn_id:
            return PaymentResult(
                success=False,
                error_message="Pesapal credentials not configured",
            )

        customer = customer or {}
        order = {
            "id": reference_id,
            "currency": currency,
            "amount": float(amount),
            "description": description[:100],
            "callback_url": f"{settings.app_url}/booking/confirmation?ref={reference_id}",
            "notification_id": self.ipn_id,
            "billing_address": {
                "email_address": customer.get("email"),
                "phone_number": customer.get("phone"),
                "first_name": customer.get("name"),
            },
        }

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                token = await self._request_token(client)
                response = await client.post(
                    f"{self.base_url}/api/Transactions/SubmitOrderRequest",
                    json=order,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Pesapal order submission failed for {reference_id}: {e}")
            return PaymentResult(success=False, error_message=str(e))

        if response.status_code != 200 or data.get("error"):
            return PaymentResult(
                success=False,
                error_message=str(data.get("error") or f"API returned {response.status_code}"),
                raw_response=data,
            )

        return PaymentResult(
            success=True,
            transaction_id=data.get("order_tracking_id"),
            redirect_url=data.get("redirect_url"),
            raw_response=data,
        )

    async def verify_payment(self, transaction_id: str) -> PaymentResult:
        """Query GetTransactionStatus for an order tracking id."""
        if not self.consumer_key or not self.consumer_secret:
            return PaymentResult(
                success=False,
                error_message="Pesapal credentials not configured",
            )

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                token = await self._request_token(client)
                response = await client.get(
                    f"{self.base_url}/api/Transactions/GetTransactionStatus",
                    params={"orderTrackingId": transaction_id},
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Accept": "application/json",
                    },
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Pesapal status lookup failed for {transaction_id}: {e}")
            return PaymentResult(success=False, transaction_id=transaction_id, error_message=str(e))

        state = _STATUS_MAP.get(data.get("status_code"), GatewayPaymentState.PENDING)
        amount = data.get("amount")
        return PaymentResult(
            success=state == GatewayPaymentState.COMPLETED,
            transaction_id=transaction_id,
            state=state,
            amount=Decimal(str(amount)) if amount is not None else None,
            currency=data.get("currency"),
            raw_response=data,
        )

    async def parse_webhook(
        self,
        payload: dict,
        signature: str | None = None,
    ) -> GatewayEvent | None:
        """Resolve an IPN by querying the transaction status.

        Pesapal IPNs are unsigned and only carry identifiers, so the
        authoritative state always comes from GetTransactionStatus.
        """
        tracking_id = payload.get("OrderTrackingId")
        merchant_reference = payload.get("OrderMerchantReference")
        if not tracking_id or not merchant_reference:
            return None

        result = await self.verify_payment(tracking_id)
        if result.error_message and result.raw_response is None:
            return None

        return GatewayEvent(
            gateway=GatewayType.PESAPAL,
            merchant_reference=merchant_reference,
            state=result.state,
            transaction_id=tracking_id,
            amount=result.amount,
            currency=result.currency,
            raw_payload={"ipn": payload, "status": result.raw_response},
        )

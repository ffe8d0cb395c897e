"""Flutterwave payment gateway adapter.

Flutterwave v3 Standard integration for card and bank payments.
Documentation: https://developer.flutterwave.com/docs
"""

import hmac
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

_STATUS_MAP = {
    "successful": GatewayPaymentState.COMPLETED,
    "failed": GatewayPaymentState.FAILED,
    "cancelled": GatewayPaymentState.FAILED,
    "pending": GatewayPaymentState.PENDING,
}


class FlutterwaveGateway(PaymentGateway):
    """Flutterwave payment gateway implementation."""

    base_url = "https://api.flutterwave.com/v3"

    def __init__(self):
        self.secret_key = settings.flutterwave_secret_key
        self.secret_hash = settings.flutterwave_secret_hash

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.FLUTTERWAVE

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def create_payment(
        self,
        amount: Decimal,
        currency: str,
        reference_id: str,
        description: str,
        customer: dict | None = None,
    ) -> PaymentResult:
        """Create a Standard checkout link."""
        if not self.secret_key:
            return PaymentResult(
                success=False,
                error_message="Flutterwave not configured",
            )

        customer = customer or {}
        body = {
            "tx_ref": reference_id,
            "amount": str(amount),
            "currency": currency,
            "redirect_url": f"{settings.app_url}/booking/confirmation?ref={reference_id}",
            "customer": {
                "email": customer.get("email"),
                "name": customer.get("name"),
                "phonenumber": customer.get("phone"),
            },
            "customizations": {"title": "SafariPlus", "description": description[:100]},
        }

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    f"{self.base_url}/payments", json=body, headers=self._headers()
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Flutterwave payment link failed for {reference_id}: {e}")
            return PaymentResult(success=False, error_message=str(e))

        if data.get("status") != "success":
            return PaymentResult(
                success=False,
                error_message=data.get("message") or f"API returned {response.status_code}",
                raw_response=data,
            )

        return PaymentResult(
            success=True,
            transaction_id=reference_id,
            redirect_url=(data.get("data") or {}).get("link"),
            raw_response=data,
        )

    async def verify_payment(self, transaction_id: str) -> PaymentResult:
        """Verify a transaction by its Flutterwave id."""
        if not self.secret_key:
            return PaymentResult(
                success=False,
                error_message="Flutterwave not configured",
            )

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(
                    f"{self.base_url}/transactions/{transaction_id}/verify",
                    headers=self._headers(),
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Flutterwave verification failed for {transaction_id}: {e}")
            return PaymentResult(success=False, transaction_id=transaction_id, error_message=str(e))

        tx = data.get("data") or {}
        state = _STATUS_MAP.get(str(tx.get("status", "")).lower(), GatewayPaymentState.PENDING)
        amount = tx.get("amount")
        return PaymentResult(
            success=state == GatewayPaymentState.COMPLETED,
            transaction_id=str(tx.get("id", transaction_id)),
            state=state,
            amount=Decimal(str(amount)) if amount is not None else None,
            currency=tx.get("currency"),
            raw_response=data,
        )

    async def parse_webhook(
        self,
        payload: dict,
        signature: str | None = None,
    ) -> GatewayEvent | None:
        """Check the verif-hash header and normalize a charge event."""
        if not self.secret_hash or not signature:
            return None
        if not hmac.compare_digest(signature, self.secret_hash):
            return None

        event = payload.get("event", "")
        data = payload.get("data") or {}
        if not event.startswith("charge.") or not data.get("tx_ref"):
            return None

        state = _STATUS_MAP.get(str(data.get("status", "")).lower(), GatewayPaymentState.PENDING)
        amount = data.get("amount")

        # Re-verify with the API when possible; webhook bodies are not authoritative
        if data.get("id") is not None and self.secret_key:
            verified = await self.verify_payment(str(data["id"]))
            if verified.raw_response is not None:
                state = verified.state
                amount = verified.amount if verified.amount is not None else amount

        return GatewayEvent(
            gateway=GatewayType.FLUTTERWAVE,
            merchant_reference=data["tx_ref"],
            state=state,
            transaction_id=str(data["id"]) if data.get("id") is not None else None,
            amount=Decimal(str(amount)) if amount is not None else None,
            currency=data.get("currency"),
            raw_payload=payload,
        )

"""Tests for payment gateway routing."""

from safari_ledger.domain.gateway_routing import (
    available_payment_methods,
    gateway_supports_currency,
    recommended_gateway,
    select_gateway,
)
from safari_ledger.gateways.base import GatewayType


def test_mpesa_and_bank_transfer_use_pesapal():
    assert select_gateway("mpesa", "KES") == GatewayType.PESAPAL
    assert select_gateway("MPESA", "USD") == GatewayType.PESAPAL
    assert select_gateway("bank_transfer", "KES") == GatewayType.PESAPAL


def test_cards_follow_currency_table():
    assert select_gateway("card", "KES") == GatewayType.PESAPAL
    assert select_gateway("card", "usd") == GatewayType.FLUTTERWAVE
    assert select_gateway("card", "XOF") == GatewayType.FLUTTERWAVE


def test_unknown_method_defaults_to_flutterwave():
    assert select_gateway("paypal", "USD") == GatewayType.FLUTTERWAVE


def test_available_methods_by_currency():
    assert available_payment_methods("KES") == ["mpesa", "card", "bank_transfer"]
    assert available_payment_methods("USD") == ["card"]
    assert available_payment_methods("NGN") == ["card", "bank_transfer"]


def test_recommended_gateway_by_country():
    assert recommended_gateway("ke") == GatewayType.PESAPAL
    assert recommended_gateway("US") == GatewayType.FLUTTERWAVE
    assert recommended_gateway(None) == GatewayType.FLUTTERWAVE


def test_currency_support():
    assert gateway_supports_currency(GatewayType.PESAPAL, "kes")
    assert not gateway_supports_currency(GatewayType.PESAPAL, "NGN")

"""Payment gateway routing rules.

Pure functions: which processor handles a method/currency pair and which
methods a customer can be offered.
"""

from safari_ledger.gateways.base import GatewayType

EAST_AFRICA_CURRENCIES = frozenset({"KES", "TZS", "UGX"})
EAST_AFRICA_COUNTRIES = frozenset({"KE", "TZ", "UG", "RW"})

CARD_GATEWAY_BY_CURRENCY: dict[str, GatewayType] = {
    "KES": GatewayType.PESAPAL,
    "TZS": GatewayType.PESAPAL,
    "UGX": GatewayType.PESAPAL,
    "USD": GatewayType.FLUTTERWAVE,
    "EUR": GatewayType.FLUTTERWAVE,
    "GBP": GatewayType.FLUTTERWAVE,
    "NGN": GatewayType.FLUTTERWAVE,
    "GHS": GatewayType.FLUTTERWAVE,
    "ZAR": GatewayType.FLUTTERWAVE,
    "RWF": GatewayType.FLUTTERWAVE,
}

GATEWAY_PAYMENT_METHODS: dict[GatewayType, tuple[str, ...]] = {
    GatewayType.PESAPAL: ("mpesa", "card", "bank_transfer"),
    GatewayType.FLUTTERWAVE: ("card", "bank_transfer"),
}

GATEWAY_CURRENCIES: dict[GatewayType, frozenset[str]] = {
    GatewayType.PESAPAL: frozenset({"KES", "TZS", "UGX", "USD"}),
    GatewayType.FLUTTERWAVE: frozenset(
        {"NGN", "USD", "EUR", "GBP", "KES", "GHS", "ZAR", "TZS", "UGX", "RWF"}
    ),
}

BANK_TRANSFER_CURRENCIES = frozenset({"KES", "TZS", "UGX", "NGN", "GHS"})


def select_gateway(method: str, currency: str) -> GatewayType:
    """Pick the processor for a payment method and currency.

    M-Pesa and bank transfers go through Pesapal. Cards follow the
    per-currency table, defaulting to Flutterwave. Unknown methods fall
    back to Flutterwave.
    """
    method = method.lower()
    currency = currency.upper()

    if method == "mpesa":
        return GatewayType.PESAPAL
    if method == "card":
        return CARD_GATEWAY_BY_CURRENCY.get(currency, GatewayType.FLUTTERWAVE)
    if method == "bank_transfer":
        return GatewayType.PESAPAL
    return GatewayType.FLUTTERWAVE


def gateway_payment_methods(gateway: GatewayType) -> tuple[str, ...]:
    return GATEWAY_PAYMENT_METHODS.get(GatewayType(gateway), ())


def gateway_supports_currency(gateway: GatewayType, currency: str) -> bool:
    return currency.upper() in GATEWAY_CURRENCIES.get(GatewayType(gateway), frozenset())


def recommended_gateway(country_code: str | None) -> GatewayType:
    """Pesapal for East African customers, Flutterwave elsewhere."""
    if country_code and country_code.upper() in EAST_AFRICA_COUNTRIES:
        return GatewayType.PESAPAL
    return GatewayType.FLUTTERWAVE


def available_payment_methods(currency: str) -> list[str]:
    """Payment methods a customer paying in ``currency`` can choose."""
    currency = currency.upper()
    methods: list[str] = []
    if currency in EAST_AFRICA_CURRENCIES:
        methods.append("mpesa")
    methods.append("card")
    if currency in BANK_TRANSFER_CURRENCIES:
        methods.append("bank_transfer")
    return methods

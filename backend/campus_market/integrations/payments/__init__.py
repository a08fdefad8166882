from campus_market.integrations.payments.base import CardDetails, ChargeResult, PaymentsProvider
from campus_market.integrations.payments.mock_provider import MockPaymentsProvider


def build_payments_provider(name: str | None = None) -> PaymentsProvider:
    provider = (name or "mock").strip().lower()
    if provider != "mock":
        raise ValueError(f"unsupported payments provider: {provider}")
    return MockPaymentsProvider()


__all__ = [
    "CardDetails",
    "ChargeResult",
    "PaymentsProvider",
    "MockPaymentsProvider",
    "build_payments_provider",
]

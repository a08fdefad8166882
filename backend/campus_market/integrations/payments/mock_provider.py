from __future__ import annotations

import secrets
import string
import time
from decimal import Decimal

from campus_market.integrations.payments.base import CardDetails, ChargeResult, PaymentsProvider, RefundResult

_ALPHABET = string.ascii_uppercase + string.digits


def new_transaction_id() -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"TXN-{int(time.time() * 1000)}-{suffix}"


class MockPaymentsProvider(PaymentsProvider):
    """Always approves. Only the card fingerprint leaves this object."""

    name = "mock"

    def charge(self, *, amount: Decimal, currency: str, card: CardDetails, reference: str) -> ChargeResult:
        return ChargeResult(
            status="completed",
            transaction_id=new_transaction_id(),
            amount=amount,
            currency=currency,
            provider=self.name,
            raw={"reference": reference, "last4": card.last4},
        )

    def refund(self, *, transaction_id: str, amount: Decimal) -> RefundResult:
        return RefundResult(
            status="refunded",
            transaction_id=transaction_id,
            amount=amount,
            provider=self.name,
            raw={"transaction_id": transaction_id},
        )

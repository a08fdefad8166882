from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal

from campus_market.errors import InvalidPaymentDetails

_CARD_NUMBER_RE = re.compile(r"^\d{16}$")
_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")


@dataclass
class CardDetails:
    number: str
    holder_name: str
    expiry: str = ""
    cvv: str = ""

    @classmethod
    def from_payload(cls, payload: dict | None) -> "CardDetails":
        """Build card details from a request body, rejecting anything malformed.

        Spaces and dashes inside the number are tolerated; the result must be
        exactly sixteen digits. Expiry is optional but must read ``MM/YY``.
        """
        data = payload if isinstance(payload, dict) else {}
        number = re.sub(r"[\s-]", "", str(data.get("card_number") or data.get("number") or ""))
        holder = str(data.get("card_holder_name") or data.get("holder_name") or "").strip()
        expiry = str(data.get("expiry_date") or data.get("expiry") or "").strip()
        cvv = str(data.get("cvv") or "").strip()

        if not _CARD_NUMBER_RE.match(number):
            raise InvalidPaymentDetails("Card number must be 16 digits", field="card_number")
        if not holder:
            raise InvalidPaymentDetails("Card holder name is required", field="card_holder_name")
        if expiry and not _EXPIRY_RE.match(expiry):
            raise InvalidPaymentDetails("Expiry date must be MM/YY", field="expiry_date")
        return cls(number=number, holder_name=holder[:120], expiry=expiry, cvv=cvv)

    @property
    def last4(self) -> str:
        return self.number[-4:]


@dataclass
class ChargeResult:
    status: str
    transaction_id: str
    amount: Decimal
    currency: str
    provider: str
    raw: dict | None = None


@dataclass
class RefundResult:
    status: str
    transaction_id: str
    amount: Decimal
    provider: str
    raw: dict | None = None


class PaymentsProvider:
    name = "unknown"

    def charge(self, *, amount: Decimal, currency: str, card: CardDetails, reference: str) -> ChargeResult:
        raise NotImplementedError

    def refund(self, *, transaction_id: str, amount: Decimal) -> RefundResult:
        raise NotImplementedError

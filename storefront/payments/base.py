# storefront/payments/base.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

# znormalizowane statusy platnosci
CONFIRMED = "confirmed"
PENDING = "pending"
REFUNDED = "refunded"
FAILED = "failed"


def to_minor_units(amount: Decimal | int | float) -> int:
    """Kwota w groszach/piastrach, zaokraglenie half-up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PaymentResult:
    """Wynik platnosci w standardowym ksztalcie, niezalezny od bramki."""

    status: str
    id: str | None = None
    raw_status: str | None = None
    update_time: str = field(default_factory=utc_now_iso)
    order_id: int | None = None
    gateway_reference: str | None = None
    amount_cents: int | None = None
    currency: str | None = None
    source_type: str | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status == CONFIRMED


@dataclass
class IntentionResult:
    checkout_url: str
    client_secret: str | None = None
    intention_id: str | None = None
    # id zamowienia po stronie bramki - zapasowy klucz do dopasowania webhooka
    gateway_reference: str | None = None


class PaymentProcessor:
    """Interfejs adaptera bramki platnosci."""

    name = "base"
    online = True

    def create_intention(self, order, email: str | None, user_id: int | None) -> IntentionResult:
        raise NotImplementedError

    def normalize_result(self, callback_data: Any, transaction_id: str | None = None) -> PaymentResult:
        raise NotImplementedError

    def parse_webhook(self, body: Any, query: dict[str, str]) -> PaymentResult:
        raise NotImplementedError

# storefront/services/pricing.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from storefront.utils.settings import FREE_SHIPPING_THRESHOLD, SHIPPING_FEES, TAX_RATE

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderTotals:
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    discount_amount: Decimal
    total: Decimal


def quantize(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_totals(
    items_price: Decimal,
    shipping_method: str = "Standard",
    discount_amount: Decimal = Decimal("0"),
    tax_rate: Decimal = TAX_RATE,
    shipping_fees: dict[str, Decimal] = SHIPPING_FEES,
    free_shipping_threshold: Decimal | None = FREE_SHIPPING_THRESHOLD,
) -> OrderTotals:
    """total = items + tax + shipping - discount; liczone raz, przy tworzeniu zamowienia."""
    items_price = quantize(items_price)
    tax_price = quantize(items_price * tax_rate)

    shipping_price = quantize(shipping_fees.get(shipping_method, Decimal("0")))
    if free_shipping_threshold is not None and items_price >= free_shipping_threshold:
        shipping_price = quantize(Decimal("0"))

    discount_amount = quantize(min(discount_amount, items_price))
    total = items_price + tax_price + shipping_price - discount_amount

    return OrderTotals(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        discount_amount=discount_amount,
        total=total,
    )

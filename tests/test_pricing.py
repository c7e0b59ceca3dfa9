from decimal import Decimal

from storefront.payments.base import to_minor_units
from storefront.services.pricing import calculate_totals


def test_total_without_tax_or_fees():
    totals = calculate_totals(Decimal("200"), "Standard", tax_rate=Decimal("0"), shipping_fees={})

    assert totals.items_price == Decimal("200.00")
    assert totals.total == Decimal("200.00")


def test_total_is_items_plus_tax_plus_shipping_minus_discount():
    totals = calculate_totals(
        Decimal("99.99"),
        "Express",
        discount_amount=Decimal("10"),
        tax_rate=Decimal("0.14"),
        shipping_fees={"Express": Decimal("25")},
        free_shipping_threshold=None,
    )

    assert totals.tax_price == Decimal("14.00")
    assert totals.shipping_price == Decimal("25.00")
    assert totals.total == totals.items_price + totals.tax_price + totals.shipping_price - totals.discount_amount
    assert totals.total == Decimal("128.99")


def test_free_shipping_above_threshold():
    totals = calculate_totals(
        Decimal("500"),
        "Standard",
        tax_rate=Decimal("0"),
        shipping_fees={"Standard": Decimal("30")},
        free_shipping_threshold=Decimal("400"),
    )

    assert totals.shipping_price == Decimal("0.00")


def test_discount_cannot_exceed_items():
    totals = calculate_totals(Decimal("50"), discount_amount=Decimal("80"), tax_rate=Decimal("0"), shipping_fees={})

    assert totals.discount_amount == Decimal("50.00")
    assert totals.total == Decimal("0.00")


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("100.00")) == 10000
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(19.99) == 1999

from decimal import Decimal

import pytest
from sqlalchemy import select, update

from storefront.data.models import AddressModel, CartModel, OrderModel, ProductModel
from storefront.domain.errors import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.domain.actor import Actor
from storefront.domain.schemas import ShippingAddressIn
from storefront.services.cart_service import CartService


def _stock(db, product):
    db.expire_all()
    p = db.get(ProductModel, product.id)
    return p.quantity, p.sold


def _cart_exists(db, user_id):
    return db.execute(select(CartModel).where(CartModel.user_id == user_id)).scalar_one_or_none() is not None


def test_checkout_scenario(db, actor, product, checkout, place_order, gateway):
    order = place_order(quantity=2)

    assert order.status == "Initialized"
    assert order.items_price == Decimal("200.00")
    assert order.total == Decimal("200.00")
    assert order.items[0].price == Decimal("100.00")
    assert order.email == "jane@example.com"
    # stan magazynowy jeszcze nietkniety
    assert _stock(db, product) == (10, 0)

    intention = checkout.create_payment_intention(actor, order.id)
    assert intention.client_secret == "cs_test"
    assert "clientSecret=cs_test" in intention.checkout_url
    assert gateway.payloads[0]["amount"] == 20000
    assert gateway.payloads[0]["extras"]["orderId"] == str(order.id)

    db.expire_all()
    order = db.get(OrderModel, order.id)
    assert order.status == "Pending"
    assert order.gateway_reference == "9001"

    paid, applied = checkout.confirm_payment(actor, order.id, {"success": "true", "id": 555, "amount_cents": 20000})
    assert applied is True
    assert paid.status == "Processing"
    assert paid.is_paid is True
    assert paid.payment_result["id"] == "555"
    assert _stock(db, product) == (8, 2)
    assert not _cart_exists(db, actor.id)

    again, applied = checkout.confirm_payment(actor, order.id, {"success": "true", "id": 555})
    assert applied is False
    assert again.status == "Processing"
    assert _stock(db, product) == (8, 2)


def test_total_is_frozen_at_creation(db, actor, product, place_order):
    order = place_order(quantity=2)

    db.execute(update(ProductModel).where(ProductModel.id == product.id).values(price=Decimal("150.00")))
    db.commit()
    db.expire_all()

    order = db.get(OrderModel, order.id)
    assert order.total == Decimal("200.00")
    assert order.items[0].price == Decimal("100.00")


def test_quantity_beyond_stock_creates_no_order(db, actor, product, checkout, shipping_address):
    CartService(db).add_item(actor, product.id, 2)
    db.execute(update(ProductModel).where(ProductModel.id == product.id).values(quantity=1))
    db.commit()

    with pytest.raises(InsufficientStockError) as exc:
        checkout.create_order(actor, shipping_address=shipping_address, payment_method="credit_card")

    assert exc.value.status_code == 400
    assert exc.value.to_dict()["available"] == 1
    assert exc.value.field == "orderItems"
    assert db.execute(select(OrderModel)).first() is None


def test_variant_lines_are_checked_against_product_total(db, actor, product, checkout, shipping_address):
    svc = CartService(db)
    svc.add_item(actor, product.id, 3, color="red")
    svc.add_item(actor, product.id, 3, color="blue")
    db.execute(update(ProductModel).where(ProductModel.id == product.id).values(quantity=5))
    db.commit()

    with pytest.raises(InsufficientStockError) as exc:
        checkout.create_order(actor, shipping_address=shipping_address, payment_method="credit_card")

    assert exc.value.to_dict()["field"] == "orderItems"
    assert exc.value.available == 5
    assert db.execute(select(OrderModel)).first() is None
    assert _stock(db, product) == (5, 0)


def test_failed_stock_decrement_rolls_back_payment(db, actor, product, checkout, place_order):
    order = place_order(quantity=2)
    db.execute(update(ProductModel).where(ProductModel.id == product.id).values(quantity=1))
    db.commit()

    with pytest.raises(InsufficientStockError):
        checkout.confirm_payment(actor, order.id, {"success": "true", "id": 1})

    db.expire_all()
    order = db.get(OrderModel, order.id)
    assert order.is_paid is False
    assert order.status == "Initialized"
    assert order.inventory_committed is False
    assert _stock(db, product) == (1, 0)
    assert _cart_exists(db, actor.id)


def test_unsuccessful_payment_is_rejected(db, actor, checkout, place_order):
    order = place_order()

    with pytest.raises(ValidationError) as exc:
        checkout.confirm_payment(actor, order.id, {"success": "false", "id": 2})

    assert exc.value.message == "Payment not successful"
    assert exc.value.field == "paymentStatus"


def test_amount_mismatch_is_rejected(db, actor, checkout, place_order):
    order = place_order()

    with pytest.raises(ValidationError):
        checkout.confirm_payment(actor, order.id, {"success": "true", "amount_cents": 100})


def test_busy_lock_returns_conflict(db, actor, checkout, place_order, lock_service):
    order = place_order()
    lock_service.busy = True

    with pytest.raises(ConflictError) as exc:
        checkout.confirm_payment(actor, order.id, {"success": "true"})

    assert exc.value.status_code == 409
    assert lock_service.held == {}


def test_gateway_failure_reverts_to_initialized(db, actor, checkout, place_order, gateway):
    order = place_order()
    gateway.error = GatewayError("Invalid token", status=401)

    with pytest.raises(GatewayError):
        checkout.create_payment_intention(actor, order.id)

    db.expire_all()
    assert db.get(OrderModel, order.id).status == "Initialized"


def test_unexpected_gateway_error_is_wrapped(db, actor, checkout, place_order, gateway):
    order = place_order()
    gateway.error = RuntimeError("boom")

    with pytest.raises(GatewayError) as exc:
        checkout.create_payment_intention(actor, order.id)

    assert exc.value.to_dict() == {"message": "Payment processing error", "error": "boom"}
    db.expire_all()
    assert db.get(OrderModel, order.id).status == "Initialized"


def test_offline_method_has_no_intention(db, actor, checkout, place_order):
    order = place_order(payment_method="cash_on_delivery")

    with pytest.raises(ValidationError) as exc:
        checkout.create_payment_intention(actor, order.id)

    assert exc.value.field == "paymentMethod"


def test_empty_cart(db, actor, checkout, shipping_address):
    with pytest.raises(ValidationError) as exc:
        checkout.create_order(actor, shipping_address=shipping_address, payment_method="credit_card")

    assert exc.value.field == "cart"


def test_invalid_payment_method(db, actor, product, checkout, shipping_address):
    CartService(db).add_item(actor, product.id, 1)

    with pytest.raises(ValidationError) as exc:
        checkout.create_order(actor, shipping_address=shipping_address, payment_method="bitcoin")

    assert exc.value.message == "Invalid payment method"


def test_incomplete_inline_address(db, actor, product, checkout):
    CartService(db).add_item(actor, product.id, 1)

    with pytest.raises(ValidationError) as exc:
        checkout.create_order(
            actor,
            shipping_address=ShippingAddressIn(name="Jane", city="Cairo"),
            payment_method="credit_card",
        )

    assert exc.value.field == "shippingAddress"


def test_saved_and_default_addresses(db, actor, product, checkout):
    saved = AddressModel(
        user_id=actor.id,
        name="Jane Doe",
        address_line1="5 Tahrir Sq",
        city="Cairo",
        state="Cairo",
        postal_code="11511",
        country="EG",
        phone="0100",
        is_default=True,
        type="shipping",
    )
    db.add(saved)
    db.commit()
    CartService(db).add_item(actor, product.id, 1)

    by_id = checkout.create_order(actor, address_id=saved.id, payment_method="credit_card")
    by_default = checkout.create_order(actor, payment_method="credit_card")

    assert by_id.shipping_address["address"] == "5 Tahrir Sq"
    assert by_default.shipping_address["postalCode"] == "11511"

    with pytest.raises(NotFoundError):
        checkout.create_order(actor, address_id=saved.id + 100, payment_method="credit_card")


def test_other_users_order_is_forbidden(db, checkout, place_order):
    order = place_order()

    with pytest.raises(AuthorizationError):
        checkout.create_payment_intention(Actor(id=2), order.id)


def test_redirect_order_id(db, checkout, place_order):
    order = place_order()

    assert checkout.redirect_order_id(str(order.id), "true") == order.id
    assert checkout.redirect_order_id(str(order.id), "false") is None
    assert checkout.redirect_order_id("abc", "true") is None
    assert checkout.redirect_order_id("424242", "true") is None

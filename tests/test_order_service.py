from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

import storefront.services.notification_service as notifications
from storefront.data.database import SessionLocal
from storefront.data.models import OrderItemModel, OrderModel, ProductModel
from storefront.domain.actor import Actor
from storefront.domain.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from storefront.domain.order_state import OrderStatus
from storefront.domain.schemas import OrderUpdate
from storefront.payments.base import CONFIRMED, PaymentResult
from storefront.services.checkout_service import CheckoutService
from storefront.services.order_service import OrderService, PaymentOutcome


def _paid_order(actor, checkout, place_order, quantity=2):
    order = place_order(quantity=quantity)
    checkout.confirm_payment(actor, order.id, {"success": "true", "id": 77})
    return order.id


def _product(db, product):
    db.expire_all()
    return db.get(ProductModel, product.id)


def test_cancelling_paid_order_restocks_once(db, actor, product, checkout, place_order):
    order_id = _paid_order(actor, checkout, place_order, quantity=3)
    svc = OrderService(db)
    assert (_product(db, product).quantity, _product(db, product).sold) == (7, 3)

    cancelled = svc.change_status(order_id, OrderStatus.CANCELLED, note="Customer request")
    assert cancelled.status == "Cancelled"
    assert cancelled.inventory_committed is False
    assert "Customer request" in cancelled.notes
    p = _product(db, product)
    assert (p.quantity, p.sold) == (10, 0)

    refunded = svc.change_status(order_id, OrderStatus.REFUNDED)
    assert refunded.status == "Refunded"
    p = _product(db, product)
    assert (p.quantity, p.sold) == (10, 0)


def test_cancelling_unpaid_order_leaves_stock(db, product, place_order):
    order = place_order()

    OrderService(db).change_status(order.id, OrderStatus.CANCELLED)

    assert _product(db, product).quantity == 10


def test_refund_of_unpaid_order_is_invalid(db, place_order):
    order = place_order()
    svc = OrderService(db)
    svc.change_status(order.id, OrderStatus.CANCELLED)

    with pytest.raises(InvalidTransitionError):
        svc.change_status(order.id, OrderStatus.REFUNDED)


def test_processing_only_through_payment(db, place_order):
    order = place_order()

    with pytest.raises(InvalidTransitionError):
        OrderService(db).change_status(order.id, OrderStatus.PROCESSING)


def test_delivery_stamps_delivered_at(db, actor, checkout, place_order):
    order_id = _paid_order(actor, checkout, place_order)
    svc = OrderService(db)

    svc.change_status(order_id, OrderStatus.SHIPPED)
    delivered = svc.change_status(order_id, OrderStatus.DELIVERED)

    assert delivered.is_delivered is True
    assert delivered.delivered_at is not None


def test_update_order_requires_admin(db, actor, place_order):
    order = place_order()

    with pytest.raises(AuthorizationError):
        OrderService(db).update_order(actor, order.id, OrderUpdate(notes="hi"))


def test_admin_update(db, actor, admin, checkout, place_order):
    order_id = _paid_order(actor, checkout, place_order)

    updated = OrderService(db).update_order(
        admin,
        order_id,
        OrderUpdate(status="Shipped", trackingNumber="TRK-1", shippingMethod="Express"),
    )

    assert updated.status == "Shipped"
    assert updated.tracking_number == "TRK-1"
    assert updated.shipping_method == "Express"


def test_orders_are_scoped_to_owner(db, actor, admin, place_order):
    order = place_order()
    svc = OrderService(db)

    assert [o.id for o in svc.list_orders(actor)] == [order.id]
    assert svc.list_orders(Actor(id=2)) == []
    assert [o.id for o in svc.list_orders(admin)] == [order.id]
    assert svc.get_order(admin, order.id).id == order.id
    with pytest.raises(AuthorizationError):
        svc.get_order(Actor(id=2), order.id)


def test_abandoned_orders_are_cancelled(db, actor, checkout, place_order):
    stale = place_order()
    fresh = place_order()
    paid_id = _paid_order(actor, checkout, place_order)
    old = datetime.now(timezone.utc) - timedelta(hours=3)
    db.execute(
        update(OrderModel)
        .where(OrderModel.id.in_([stale.id, paid_id]))
        .values(created_at=old)
    )
    db.commit()

    cancelled = OrderService(db).cancel_abandoned_orders(timeout_minutes=60)

    assert cancelled == 1
    db.expire_all()
    assert db.get(OrderModel, stale.id).status == "Cancelled"
    assert "payment timeout" in db.get(OrderModel, stale.id).notes
    assert db.get(OrderModel, fresh.id).status == "Initialized"
    assert db.get(OrderModel, paid_id).status == "Processing"


def test_stale_session_sees_concurrent_payment_as_already_paid(
    db, actor, product, registry, lock_service, place_order
):
    order = place_order(quantity=2)
    stale = SessionLocal()
    other = SessionLocal()
    try:
        svc = OrderService(stale)
        assert svc.load(order.id).is_paid is False

        CheckoutService(other, registry, lock_service).confirm_payment(
            actor, order.id, {"success": "true", "id": 501}
        )

        outcome = svc.mark_paid(order.id, PaymentResult(status=CONFIRMED, id="502"))
    finally:
        stale.close()
        other.close()

    assert outcome is PaymentOutcome.ALREADY_PAID
    p = _product(db, product)
    assert (p.quantity, p.sold) == (8, 2)
    db.expire_all()
    assert db.get(OrderModel, order.id).payment_id == "501"


def test_broker_outage_does_not_undo_payment(db, actor, product, checkout, place_order, monkeypatch):
    def broker_down(*args, **kwargs):
        raise ConnectionError("broker unavailable")

    monkeypatch.setattr(notifications.send_order_notification_task, "delay", broker_down)
    order = place_order()

    paid, applied = checkout.confirm_payment(actor, order.id, {"success": "true", "id": 88})
    assert applied is True
    assert paid.is_paid is True

    cancelled = OrderService(db).change_status(order.id, OrderStatus.CANCELLED)
    assert cancelled.status == "Cancelled"
    p = _product(db, product)
    assert (p.quantity, p.sold) == (10, 0)


def test_admin_deletes_unpaid_order(db, admin, place_order):
    order = place_order()
    order_id = order.id

    OrderService(db).delete_order(admin, order_id)

    db.expire_all()
    assert db.get(OrderModel, order_id) is None
    assert db.execute(select(OrderItemModel).where(OrderItemModel.order_id == order_id)).first() is None


def test_paid_order_cannot_be_deleted(db, actor, admin, checkout, place_order):
    order_id = _paid_order(actor, checkout, place_order)
    svc = OrderService(db)

    with pytest.raises(ValidationError) as exc:
        svc.delete_order(admin, order_id)
    assert exc.value.field == "status"

    db.expire_all()
    order = db.get(OrderModel, order_id)
    assert order.is_paid is True
    assert len(order.items) == 1


def test_delete_order_requires_admin(db, actor, admin, place_order):
    order = place_order()
    svc = OrderService(db)

    with pytest.raises(AuthorizationError):
        svc.delete_order(actor, order.id)
    with pytest.raises(NotFoundError):
        svc.delete_order(admin, 12345)

from datetime import datetime, timedelta, timezone

from sqlalchemy import update

import storefront.tasks.webhooks as webhook_tasks
from storefront.data.models import OrderModel
from storefront.tasks.abandoned_orders import cancel_abandoned_orders_task


def test_abandoned_orders_task(db, place_order):
    order = place_order()
    db.execute(
        update(OrderModel)
        .where(OrderModel.id == order.id)
        .values(created_at=datetime.now(timezone.utc) - timedelta(hours=2))
    )
    db.commit()

    assert cancel_abandoned_orders_task.delay(60).get() == 1

    db.expire_all()
    assert db.get(OrderModel, order.id).status == "Cancelled"


def test_webhook_task_returns_outcome(db, place_order, registry, lock_service, monkeypatch):
    monkeypatch.setattr(webhook_tasks, "lock_service", lock_service)
    monkeypatch.setattr(webhook_tasks, "payment_methods", registry)
    order = place_order()
    body = {
        "obj": {
            "id": 8,
            "success": True,
            "amount_cents": 20000,
            "payment_key_claims": {"extra": {"orderId": str(order.id)}},
        }
    }

    assert webhook_tasks.reconcile_payment_webhook_task.delay(body, {}).get() == "paid"
    assert webhook_tasks.reconcile_payment_webhook_task.delay(body, {}).get() == "already_paid"
    assert webhook_tasks.reconcile_payment_webhook_task.delay({"obj": "x"}, {}).get() == "rejected"

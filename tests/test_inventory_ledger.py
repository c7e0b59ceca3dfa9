import threading
from types import SimpleNamespace

import pytest
from sqlalchemy import update

from storefront.data.database import SessionLocal
from storefront.data.models import ProductModel
from storefront.domain.errors import InsufficientStockError, NotFoundError
from storefront.services.inventory_ledger import InventoryLedger


def test_commit_and_release_move_quantity_and_sold(db, product):
    ledger = InventoryLedger(db)
    items = [SimpleNamespace(product_id=product.id, quantity=3)]

    ledger.commit_items(items)
    db.commit()
    db.refresh(product)
    assert (product.quantity, product.sold) == (7, 3)

    ledger.release_items(items)
    db.commit()
    db.refresh(product)
    assert (product.quantity, product.sold) == (10, 0)


def test_decrement_beyond_stock_is_rejected(db, product):
    ledger = InventoryLedger(db)

    with pytest.raises(InsufficientStockError) as exc:
        ledger.apply_delta(product.id, -11, 11)

    assert exc.value.available == 10
    db.rollback()
    db.refresh(product)
    assert product.quantity == 10
    assert product.sold == 0


def test_sold_counter_is_clamped_at_zero(db, product):
    InventoryLedger(db).apply_delta(product.id, 2, -5)
    db.commit()
    db.refresh(product)

    assert product.quantity == 12
    assert product.sold == 0


def test_unknown_product(db):
    ledger = InventoryLedger(db)

    with pytest.raises(NotFoundError):
        ledger.apply_delta(12345, -1, 1)
    assert ledger.apply_delta(12345, 1, -1, missing_ok=True) is False


def test_concurrent_decrements_never_oversell(db, product):
    db.execute(update(ProductModel).where(ProductModel.id == product.id).values(quantity=5))
    db.commit()
    product_id = product.id

    barrier = threading.Barrier(2)
    applied, rejected, unexpected = [], [], []

    def buy():
        session = SessionLocal()
        try:
            barrier.wait(timeout=5)
            InventoryLedger(session).apply_delta(product_id, -4, 4)
            session.commit()
            applied.append(True)
        except InsufficientStockError as e:
            session.rollback()
            rejected.append(e)
        except Exception as e:
            session.rollback()
            unexpected.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=buy) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert unexpected == []
    assert len(applied) == 1
    assert len(rejected) == 1
    assert rejected[0].available == 1

    db.expire_all()
    p = db.get(ProductModel, product_id)
    assert p.quantity == 1
    assert p.sold == 4

# storefront/services/inventory_ledger.py
from typing import Iterable

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.domain.errors import InsufficientStockError, NotFoundError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class InventoryLedger:
    """
    Atomowe zmiany stanu magazynowego.

    Kazda zmiana to pojedynczy warunkowy UPDATE (quantity = quantity + delta),
    wiec dwa rownolegle zakupy tego samego produktu serializuja sie na wierszu
    w bazie, a quantity nigdy nie spada ponizej zera. Ledger nie robi commit -
    dziala w transakcji wywolujacego.
    """

    def __init__(self, db: Session):
        self.db = db

    def _snapshot(self, product_id: int):
        return self.db.execute(
            select(ProductModel.name, ProductModel.quantity, ProductModel.sold).where(
                ProductModel.id == product_id
            )
        ).one_or_none()

    def apply_delta(
        self,
        product_id: int,
        quantity_delta: int,
        sold_delta: int,
        missing_ok: bool = False,
    ) -> bool:
        current = self._snapshot(product_id)
        if current is None:
            if missing_ok:
                logger.warning(f"Product {product_id} no longer exists, inventory delta skipped")
                return False
            raise NotFoundError(f"Product with ID {product_id} not found", field="orderItems")

        # odczyt tylko do logow, o wyniku decyduje warunek w UPDATE
        if current.sold + sold_delta < 0:
            logger.warning(
                f"Inventory anomaly: sold counter of product {product_id} would drop to "
                f"{current.sold + sold_delta}, clamping to 0"
            )

        res = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.quantity + quantity_delta >= 0,
            )
            .values(
                quantity=ProductModel.quantity + quantity_delta,
                sold=case(
                    (ProductModel.sold + sold_delta < 0, 0),
                    else_=ProductModel.sold + sold_delta,
                ),
            )
            .execution_options(synchronize_session=False)
        )

        if res.rowcount == 0:
            latest = self._snapshot(product_id)
            available = latest.quantity if latest else 0
            logger.warning(
                f"Stock update rejected for product {product_id}: "
                f"available {available}, delta {quantity_delta}"
            )
            raise InsufficientStockError(product_id, current.name, available, field="orderItems")

        logger.info(
            f"Inventory delta applied to product {product_id}: "
            f"quantity {quantity_delta:+d}, sold {sold_delta:+d}"
        )
        return True

    def commit_items(self, items: Iterable) -> None:
        """Odejmuje pozycje zamowienia ze stanu (platnosc potwierdzona)."""
        for item in items:
            self.apply_delta(item.product_id, -item.quantity, item.quantity)

    def release_items(self, items: Iterable) -> None:
        """Zwraca pozycje zamowienia na stan (anulowanie/zwrot po platnosci)."""
        for item in items:
            self.apply_delta(item.product_id, item.quantity, -item.quantity, missing_ok=True)

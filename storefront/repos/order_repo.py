# storefront/repos/order_repo.py
from datetime import datetime
from typing import Iterable

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.order_state import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def list_orders(self, user_id: int | None = None) -> list[OrderModel]:
        stmt = select(OrderModel).order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        if user_id is not None:
            stmt = stmt.where(OrderModel.user_id == user_id)
        return list(self.db.execute(stmt).scalars().all())

    def find_by_gateway_reference(self, reference: str) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel).where(OrderModel.gateway_reference == reference)
            ).scalars().all()
        )

    def find_abandoned(self, cutoff: datetime) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel).where(
                    OrderModel.status.in_([OrderStatus.INITIALIZED.value, OrderStatus.PENDING.value]),
                    OrderModel.is_paid.is_(False),
                    OrderModel.created_at < cutoff,
                )
            ).scalars().all()
        )

    def compare_and_set(
        self,
        order_id: int,
        from_statuses: Iterable[OrderStatus],
        values: dict,
        **conditions,
    ) -> bool:
        """
        Warunkowy UPDATE zamowienia - przechodzi tylko jesli status nadal jest
        jednym z from_statuses (i pola z conditions maja oczekiwane wartosci).
        Zwraca True gdy wiersz zostal zmieniony.
        """
        stmt = update(OrderModel).where(
            OrderModel.id == order_id,
            OrderModel.status.in_([OrderStatus(s).value for s in from_statuses]),
        )
        for column, expected in conditions.items():
            stmt = stmt.where(getattr(OrderModel, column) == expected)
        res = self.db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def delete_unpaid(self, order_id: int) -> bool:
        """
        Usuwa zamowienie razem z pozycjami, tylko jesli nie jest oplacone
        i stan magazynowy nie zostal odjety. Wymaga commit/rollback wywolujacego.
        """
        self.db.execute(delete(OrderItemModel).where(OrderItemModel.order_id == order_id))
        res = self.db.execute(
            delete(OrderModel).where(
                OrderModel.id == order_id,
                OrderModel.is_paid.is_(False),
                OrderModel.inventory_committed.is_(False),
            )
        )
        return res.rowcount == 1

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def refresh(self, obj):
        self.db.refresh(obj)

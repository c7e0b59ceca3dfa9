# storefront/services/order_service.py
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.actor import Actor
from storefront.domain.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from storefront.domain.order_state import (
    PAYABLE_STATUSES,
    PAYMENT_ONLY_TARGETS,
    RESTOCKING_STATUSES,
    OrderStatus,
    ensure_transition,
)
from storefront.domain.schemas import OrderUpdate
from storefront.payments.base import PaymentResult
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger
from storefront.utils.settings import ORDER_PAYMENT_TIMEOUT_MINUTES

logger = get_logger(__name__)


class PaymentOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_PAID = "already_paid"
    REJECTED = "rejected"


def _append_note(notes: str | None, note: str) -> str:
    return f"{notes}. {note}" if notes else note


class OrderService:
    """
    Serwis odpowiedzialny za agregat zamówienia i jego maszyne stanow.

    Wszystkie zmiany statusu ida przez warunkowy UPDATE (status nadal taki,
    jaki odczytalismy), a efekty magazynowe sa w tej samej transakcji.
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.ledger = InventoryLedger(db)
        self.notification_service = notification_service or NotificationService()

    # =====================================================
    # QUERY
    # =====================================================
    def get_order(self, actor: Actor, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError("Order not found")

        if order.user_id is not None and order.user_id != actor.id and not actor.is_admin:
            raise AuthorizationError("Not authorized to access this order")

        return order

    def list_orders(self, actor: Actor) -> list[OrderModel]:
        return self.repo.list_orders(None if actor.is_admin else actor.id)

    def load(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    # =====================================================
    # COMMANDS
    # =====================================================
    def mark_paid(self, order_id: int, result: PaymentResult) -> PaymentOutcome:
        """
        Potwierdzona platnosc jako jedna transakcja:
        oznacz oplacone -> odejmij stan magazynowy -> usun koszyk -> commit.

        Warunek ``is_paid = false`` w UPDATE sprawia, ze z dwoch rownoleglych
        potwierdzen tylko jedno zmieni wiersz; drugie jest no-op.
        """
        try:
            order = self.load(order_id)

            if order.is_paid:
                logger.warning(f"Order {order_id} is already paid, skipping processing")
                return PaymentOutcome.ALREADY_PAID

            if OrderStatus(order.status) not in PAYABLE_STATUSES:
                logger.error(
                    f"Payment {result.id} ({result.status}) received for order {order_id} "
                    f"in status {order.status} - needs manual reconciliation"
                )
                return PaymentOutcome.REJECTED

            applied = self.repo.compare_and_set(
                order_id,
                PAYABLE_STATUSES,
                {
                    "is_paid": True,
                    "paid_at": datetime.now(timezone.utc),
                    "status": OrderStatus.PROCESSING.value,
                    "inventory_committed": True,
                    "payment_id": result.id,
                    "payment_status": result.status,
                    "payment_update_time": result.update_time,
                },
                is_paid=False,
            )

            if not applied:
                self.repo.rollback()
                logger.warning(f"Order {order_id} was paid concurrently, skipping processing")
                return PaymentOutcome.ALREADY_PAID

            self.ledger.commit_items(order.items)

            if order.user_id is not None:
                deleted = self.carts.delete_cart_by_user(order.user_id)
                logger.info(f"Cart of user {order.user_id} removed after payment (rows: {deleted})")

            self.repo.commit()

        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Payment of order {order_id} rolled back: {e}")
            raise PersistenceError("Failed to record payment, nothing was applied") from e
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order_id} marked as paid (payment {result.id})")
        self.notification_service.send_order_paid(order.user_id, order_id)
        return PaymentOutcome.APPLIED

    def change_status(
        self,
        order_id: int,
        target: OrderStatus | str,
        note: str | None = None,
        expected_from: Iterable[OrderStatus] | None = None,
    ) -> OrderModel | None:
        """
        Przejscie statusu z efektami ubocznymi.

        Wejscie w Cancelled/Refunded z zamowienia, ktorego pozycje byly odjete
        ze stanu, oddaje towar na magazyn dokladnie raz (flaga
        inventory_committed zmieniana w tym samym warunkowym UPDATE).
        Gdy ``expected_from`` jest podane, a status jest inny - zwraca None.
        """
        target = OrderStatus(target)
        try:
            order = self.load(order_id)
            current = OrderStatus(order.status)

            if expected_from is not None and current not in set(expected_from):
                logger.info(f"Order {order_id} is {current.value}, {target.value} transition skipped")
                return None

            if current is target:
                return order

            if target in PAYMENT_ONLY_TARGETS:
                raise InvalidTransitionError(current.value, target.value)
            ensure_transition(current, target, is_paid=order.is_paid)

            restock = target in RESTOCKING_STATUSES and order.inventory_committed
            values = {"status": target.value}
            if note:
                values["notes"] = _append_note(order.notes, note)
            if restock:
                values["inventory_committed"] = False
            if target is OrderStatus.DELIVERED and not order.is_delivered:
                values["is_delivered"] = True
                values["delivered_at"] = datetime.now(timezone.utc)

            applied = self.repo.compare_and_set(
                order_id,
                [current],
                values,
                inventory_committed=order.inventory_committed,
            )
            if not applied:
                self.repo.rollback()
                raise ConflictError("Order was modified concurrently, please retry", field="status")

            if restock:
                self.ledger.release_items(order.items)

            self.repo.commit()

        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError(f"Failed to update order {order_id}") from e
        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Order {order_id}: {current.value} -> {target.value}"
            + (" (inventory restocked)" if restock else "")
        )
        self.notification_service.send_order_status(order.user_id, order_id, target.value)
        return order

    def update_order(self, actor: Actor, order_id: int, payload: OrderUpdate) -> OrderModel:
        """Zmiany operatora: status, numer przesylki, notatki, dostawa."""
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can update orders")

        order = self.load(order_id)

        if payload.status and payload.status != order.status:
            self.change_status(order_id, payload.status)
            order = self.load(order_id)

        changed = False
        if payload.tracking_number:
            order.tracking_number = payload.tracking_number
            changed = True
        if payload.notes:
            order.notes = payload.notes
            changed = True
        if payload.shipping_method:
            order.shipping_method = payload.shipping_method
            changed = True
        if payload.is_delivered is not None:
            order.is_delivered = payload.is_delivered
            if payload.is_delivered and not order.delivered_at:
                order.delivered_at = datetime.now(timezone.utc)
            changed = True

        if changed:
            try:
                self.repo.commit()
            except SQLAlchemyError as e:
                self.repo.rollback()
                raise PersistenceError(f"Failed to update order {order_id}") from e
            self.repo.refresh(order)

        return order

    def delete_order(self, actor: Actor, order_id: int) -> None:
        """Usuniecie zamowienia przez operatora - tylko nieoplaconego."""
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can delete orders")

        self.load(order_id)

        try:
            deleted = self.repo.delete_unpaid(order_id)
            if not deleted:
                self.repo.rollback()
                raise ValidationError("Paid orders cannot be deleted", field="status")
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            raise PersistenceError(f"Failed to delete order {order_id}") from e

        logger.info(f"Order {order_id} deleted by admin {actor.id}")

    def cancel_abandoned_orders(self, timeout_minutes: int = ORDER_PAYMENT_TIMEOUT_MINUTES) -> int:
        """Anuluje nieoplacone zamowienia Initialized/Pending starsze niz timeout."""
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=timeout_minutes)
        abandoned = self.repo.find_abandoned(cutoff)
        logger.info(f"Found {len(abandoned)} abandoned orders older than {timeout_minutes} minutes")

        note = f"Order automatically cancelled due to payment timeout after {timeout_minutes} minutes"
        processed = 0
        for order_id in [o.id for o in abandoned]:
            try:
                if self.change_status(order_id, OrderStatus.CANCELLED, note=note, expected_from=PAYABLE_STATUSES):
                    processed += 1
            except (ConflictError, PersistenceError) as e:
                logger.error(f"Error processing abandoned order {order_id}: {e}")

        return processed

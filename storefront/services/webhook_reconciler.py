"""
Asynchronous reconciliation of payment-gateway callbacks.

The HTTP endpoint acknowledges the callback before anything here runs, so
nothing in this module may rely on reporting an error back to the gateway:
every outcome is logged and returned as a label. Duplicate deliveries are
safe because confirmation goes through ``OrderService.mark_paid``, whose
conditional update turns every repeat into a no-op.
"""
from enum import Enum

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import ConflictError, StorefrontError, ValidationError
from storefront.domain.order_state import PAYABLE_STATUSES, PAID_STATUSES, OrderStatus
from storefront.payments import base as payment_status
from storefront.payments.base import PaymentResult, to_minor_units
from storefront.payments.registry import PaymentMethodRegistry
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService, PaymentOutcome
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ReconcileOutcome(str, Enum):
    PAID = "paid"
    ALREADY_PAID = "already_paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    IGNORED = "ignored"
    UNMATCHED = "unmatched"
    REJECTED = "rejected"


class WebhookReconciler:
    def __init__(
        self,
        db: Session,
        payment_methods: PaymentMethodRegistry,
        lock_service: LockService,
        order_service: OrderService | None = None,
        processor_name: str = "paymob",
    ):
        self.orders = OrderRepo(db)
        self.payment_methods = payment_methods
        self.lock_service = lock_service
        self.order_service = order_service or OrderService(db)
        self.processor_name = processor_name

    def reconcile(self, body, query: dict[str, str] | None = None) -> ReconcileOutcome:
        processor = self.payment_methods.processor_named(self.processor_name)
        if processor is None:
            logger.error(f"No payment processor '{self.processor_name}' configured, webhook dropped")
            return ReconcileOutcome.REJECTED

        try:
            result = processor.parse_webhook(body, query or {})
        except ValidationError as e:
            logger.error(f"Webhook rejected: {e.message}")
            return ReconcileOutcome.REJECTED

        order = self.locate_order(result)
        if order is None:
            return ReconcileOutcome.UNMATCHED

        if result.status == payment_status.CONFIRMED:
            return self._confirm(order, result)
        if result.status == payment_status.FAILED:
            return self._fail(order, result)
        if result.status == payment_status.REFUNDED:
            return self._refund(order, result)

        logger.info(f"Webhook for order {order.id} with status {result.status}, nothing to do")
        return ReconcileOutcome.IGNORED

    def locate_order(self, result: PaymentResult) -> OrderModel | None:
        """
        Strategie dopasowania, w kolejnosci:
        1. id zamowienia z extras intencji (result.order_id),
        2. referencja bramki zapisana przy tworzeniu intencji,
        3. brak - log do recznego uzgodnienia.
        Sprzeczne wyniki 1 i 2 traktujemy jak brak dopasowania.
        """
        by_extra = self.orders.get_order(result.order_id) if result.order_id is not None else None
        by_reference = (
            self.orders.find_by_gateway_reference(result.gateway_reference)
            if result.gateway_reference
            else []
        )

        if by_extra is not None:
            if any(o.id != by_extra.id for o in by_reference):
                logger.error(
                    f"Webhook tx {result.id}: order {by_extra.id} from extras conflicts with "
                    f"gateway reference {result.gateway_reference} -> "
                    f"{[o.id for o in by_reference]}, needs manual reconciliation"
                )
                return None
            return by_extra

        if result.order_id is not None:
            logger.warning(f"Webhook tx {result.id}: order {result.order_id} from extras not found")

        if len(by_reference) == 1:
            logger.info(
                f"Webhook tx {result.id}: matched order {by_reference[0].id} "
                f"by gateway reference {result.gateway_reference}"
            )
            return by_reference[0]

        if len(by_reference) > 1:
            logger.error(
                f"Webhook tx {result.id}: gateway reference {result.gateway_reference} matches "
                f"several orders {[o.id for o in by_reference]}, needs manual reconciliation"
            )
            return None

        logger.error(
            f"Webhook tx {result.id}: no order found "
            f"(order_id={result.order_id}, reference={result.gateway_reference})"
        )
        return None

    def _confirm(self, order: OrderModel, result: PaymentResult) -> ReconcileOutcome:
        if order.is_paid:
            logger.info(f"Order {order.id} is already paid, skipping processing")
            return ReconcileOutcome.ALREADY_PAID

        expected = to_minor_units(order.total)
        if result.amount_cents is not None and result.amount_cents != expected:
            logger.error(
                f"Webhook tx {result.id}: amount {result.amount_cents} does not match "
                f"order {order.id} total {expected}, needs manual reconciliation"
            )
            return ReconcileOutcome.REJECTED

        token = self.lock_service.new_token()
        if not self.lock_service.acquire_payment_lock(order.id, token):
            # task zostanie ponowiony przez celery
            raise ConflictError(f"Payment confirmation for order {order.id} is already in progress")
        try:
            outcome = self.order_service.mark_paid(order.id, result)
        finally:
            self.lock_service.release_payment_lock(order.id, token)

        if outcome is PaymentOutcome.APPLIED:
            return ReconcileOutcome.PAID
        if outcome is PaymentOutcome.ALREADY_PAID:
            return ReconcileOutcome.ALREADY_PAID
        return ReconcileOutcome.REJECTED

    def _fail(self, order: OrderModel, result: PaymentResult) -> ReconcileOutcome:
        if order.is_paid:
            logger.warning(f"Failed transaction {result.id} for already paid order {order.id}, ignored")
            return ReconcileOutcome.IGNORED

        changed = self.order_service.change_status(
            order.id,
            OrderStatus.CANCELLED,
            note=f"Payment {result.id} {result.raw_status}",
            expected_from=PAYABLE_STATUSES,
        )
        return ReconcileOutcome.CANCELLED if changed else ReconcileOutcome.IGNORED

    def _refund(self, order: OrderModel, result: PaymentResult) -> ReconcileOutcome:
        note = f"Payment {result.id} {result.raw_status}"
        if order.is_paid:
            changed = self.order_service.change_status(
                order.id,
                OrderStatus.REFUNDED,
                note=note,
                expected_from=PAID_STATUSES | {OrderStatus.CANCELLED, OrderStatus.REFUNDED},
            )
            return ReconcileOutcome.REFUNDED if changed else ReconcileOutcome.IGNORED

        changed = self.order_service.change_status(
            order.id,
            OrderStatus.CANCELLED,
            note=note,
            expected_from=PAYABLE_STATUSES,
        )
        return ReconcileOutcome.CANCELLED if changed else ReconcileOutcome.IGNORED


def reconcile_safely(reconciler: WebhookReconciler, body, query=None) -> ReconcileOutcome | None:
    """Jak reconcile, ale bledy domenowe tylko logujemy - odpowiedz juz poszla."""
    try:
        return reconciler.reconcile(body, query)
    except ConflictError:
        raise
    except StorefrontError as e:
        logger.error(f"Webhook processing failed: {e.message}")
        return None

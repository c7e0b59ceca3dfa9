# storefront/services/checkout_service.py
from collections import defaultdict
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.actor import Actor
from storefront.domain.errors import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from storefront.domain.order_state import OrderStatus
from storefront.domain.schemas import ShippingAddressIn
from storefront.payments.base import IntentionResult, to_minor_units
from storefront.payments.registry import PaymentMethodRegistry
from storefront.repos.address_repo import AddressRepo
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService, PaymentOutcome
from storefront.services.pricing import calculate_totals
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

REQUIRED_ADDRESS_FIELDS = ("name", "address", "city", "state", "postalCode", "country", "phone")


def address_snapshot(address) -> dict:
    """Adres z ksiazki adresowej -> snapshot zapisany w zamowieniu."""
    return {
        "name": address.name,
        "address": address.address_line1,
        "address2": address.address_line2 or "",
        "city": address.city,
        "state": address.state,
        "postalCode": address.postal_code,
        "country": address.country,
        "phone": address.phone,
    }


class CheckoutService:
    """
    Checkout: koszyk -> zamowienie -> intencja platnosci -> potwierdzenie.

    Rejestr metod platnosci i lock serwis sa przekazywane jawnie;
    tozsamosc uzytkownika (actor) jest parametrem kazdej operacji.
    """

    def __init__(
        self,
        db: Session,
        payment_methods: PaymentMethodRegistry,
        lock_service: LockService,
        order_service: OrderService | None = None,
    ):
        self.db = db
        self.payment_methods = payment_methods
        self.lock_service = lock_service
        self.orders = OrderRepo(db)
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.addresses = AddressRepo(db)
        self.users = UserRepo(db)
        self.order_service = order_service or OrderService(db)

    # =====================================================
    # createOrder
    # =====================================================
    def create_order(
        self,
        actor: Actor,
        address_id: int | None = None,
        shipping_address: ShippingAddressIn | None = None,
        payment_method: str | None = None,
        shipping_method: str = "Standard",
    ) -> OrderModel:
        """
        Tworzy zamowienie (status Initialized) z koszyka uzytkownika.

        Ceny sa zamrazane w pozycjach zamowienia, stan magazynowy jest tylko
        sprawdzany - odejmujemy go dopiero po potwierdzeniu platnosci.
        Koszyk zostaje nietkniety.
        """
        final_address = self._resolve_address(actor, address_id, shipping_address)
        self.payment_methods.get(payment_method)

        cart = self.carts.get_cart_by_user(actor.id)
        items = self.carts.get_cart_items(cart.id) if cart else []
        if not items:
            raise ValidationError("Your cart is empty", field="cart")

        products = self.products.get_products(i.product_id for i in items)

        # warianty tego samego produktu schodza z jednego stanu magazynowego
        requested = defaultdict(int)
        for item in items:
            requested[item.product_id] += item.quantity

        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if not product or not product.active:
                raise NotFoundError(f"Product with ID {product_id} not found", field="orderItems")
            if product.quantity < quantity:
                raise InsufficientStockError(product.id, product.name, product.quantity, field="orderItems")

        items_price = Decimal("0")
        order_items = []
        for item in items:
            product = products[item.product_id]
            price = Decimal(product.price)
            items_price += price * item.quantity
            order_items.append(
                OrderItemModel(
                    product_id=product.id,
                    name=product.name,
                    price=price,
                    quantity=item.quantity,
                    image=product.image,
                    color=item.color,
                    size=item.size,
                )
            )

        totals = calculate_totals(items_price, shipping_method)

        order = OrderModel(
            user_id=actor.id,
            email=final_address.get("email") or self.users.get_email(actor.id),
            shipping_address={k: v for k, v in final_address.items() if k != "email"},
            payment_method=payment_method,
            shipping_method=shipping_method,
            items_price=totals.items_price,
            tax_price=totals.tax_price,
            shipping_price=totals.shipping_price,
            discount_amount=totals.discount_amount,
            total=totals.total,
            status=OrderStatus.INITIALIZED.value,
            items=order_items,
        )

        try:
            self.orders.add_order(order)
            self.orders.commit()
        except SQLAlchemyError as e:
            self.orders.rollback()
            raise PersistenceError("Failed to create order") from e

        self.orders.refresh(order)
        logger.info(
            f"Order {order.id} created from cart {cart.id}: "
            f"{len(order_items)} items, total {order.total}"
        )
        return order

    def _resolve_address(
        self,
        actor: Actor,
        address_id: int | None,
        inline: ShippingAddressIn | None,
    ) -> dict:
        final = None

        if address_id is not None:
            saved = self.addresses.get_address(address_id, actor.id)
            if not saved:
                raise NotFoundError("Address not found", field="addressId")
            final = address_snapshot(saved)
        elif inline is None:
            default = self.addresses.get_default_address(actor.id, ("shipping", "both"))
            if default:
                final = address_snapshot(default)
        else:
            final = {
                "name": inline.name,
                "address": inline.address,
                "address2": inline.address2 or "",
                "city": inline.city,
                "state": inline.state,
                "postalCode": inline.postal_code,
                "country": inline.country,
                "phone": inline.phone,
                "email": inline.email,
            }

        if not final or any(not final.get(f) for f in REQUIRED_ADDRESS_FIELDS):
            raise ValidationError("Complete shipping address is required", field="shippingAddress")

        return final

    # =====================================================
    # createPaymentIntention
    # =====================================================
    def create_payment_intention(self, actor: Actor, order_id: int) -> IntentionResult:
        order = self._get_owned_order(actor, order_id)

        if order.is_paid:
            raise ValidationError("Order is already paid", field="orderId")

        current = OrderStatus(order.status)
        if current not in (OrderStatus.INITIALIZED, OrderStatus.PENDING):
            raise InvalidTransitionError(current.value, OrderStatus.PENDING.value)

        processor = self.payment_methods.processor_for(order.payment_method)
        if not processor.online:
            raise ValidationError(
                f"Payment method '{order.payment_method}' does not use an online payment gateway",
                field="paymentMethod",
            )

        email = self.users.get_email(actor.id) or order.email

        # Initialized -> Pending zanim pojdzie request do bramki
        if current is OrderStatus.INITIALIZED:
            moved = self.orders.compare_and_set(
                order.id,
                [OrderStatus.INITIALIZED],
                {"status": OrderStatus.PENDING.value},
                is_paid=False,
            )
            if not moved:
                self.orders.rollback()
                raise ConflictError("Order was modified concurrently, please retry", field="orderId")
            self.orders.commit()
            logger.info(f"Order {order.id}: Initialized -> Pending, creating payment intention")

        try:
            intention = processor.create_intention(order, email, order.user_id)
        except Exception as e:
            self._revert_to_initialized(order.id, e)
            if isinstance(e, GatewayError):
                raise
            raise GatewayError(str(e) or "Failed to create payment intention") from e

        if intention.gateway_reference:
            order.gateway_reference = intention.gateway_reference
            try:
                self.orders.commit()
            except SQLAlchemyError as e:
                self.orders.rollback()
                # intencja istnieje, webhook i tak trafi po extras.orderId
                logger.error(f"Order {order.id}: failed to store gateway reference: {e}")

        logger.info(f"Payment intention {intention.intention_id} created for order {order.id}")
        return intention

    def _revert_to_initialized(self, order_id: int, error: Exception) -> None:
        logger.error(f"Payment intention for order {order_id} failed: {error}")
        try:
            reverted = self.orders.compare_and_set(
                order_id,
                [OrderStatus.PENDING],
                {"status": OrderStatus.INITIALIZED.value},
                is_paid=False,
            )
            self.orders.commit()
        except SQLAlchemyError as e:
            self.orders.rollback()
            logger.error(f"Order {order_id}: failed to revert status to Initialized: {e}")
            return
        if reverted:
            logger.info(f"Order {order_id}: Pending -> Initialized after gateway failure")

    # =====================================================
    # confirmPayment
    # =====================================================
    def confirm_payment(
        self,
        actor: Actor,
        order_id: int,
        callback_data: dict | None,
        transaction_id: str | None = None,
    ) -> tuple[OrderModel, bool]:
        """
        Potwierdzenie platnosci zgloszone przez klienta.
        Zwraca (zamowienie, czy_zastosowano); ponowne potwierdzenie
        oplaconego zamowienia to sukces bez efektow ubocznych.
        """
        order = self._get_owned_order(actor, order_id)

        if order.is_paid:
            logger.info(f"Order {order_id} is already paid, confirmation is a no-op")
            return order, False

        processor = self.payment_methods.processor_for(order.payment_method)
        result = processor.normalize_result(callback_data, transaction_id)

        if result.order_id is not None and result.order_id != order.id:
            raise ValidationError("Payment result belongs to a different order", field="callbackData")
        if result.amount_cents is not None and result.amount_cents != to_minor_units(order.total):
            raise ValidationError("Payment amount does not match order total", field="callbackData")
        if not result.is_confirmed:
            raise ValidationError("Payment not successful", field="paymentStatus", status=result.status)

        token = self.lock_service.new_token()
        if not self.lock_service.acquire_payment_lock(order.id, token):
            raise ConflictError("Payment confirmation for this order is already in progress", field="orderId")
        try:
            outcome = self.order_service.mark_paid(order.id, result)
        finally:
            self.lock_service.release_payment_lock(order.id, token)

        if outcome is PaymentOutcome.REJECTED:
            raise ValidationError(f"Order in status {order.status} can no longer be paid", field="status")

        return self.order_service.load(order.id), outcome is PaymentOutcome.APPLIED

    # =====================================================
    # payment redirect
    # =====================================================
    def redirect_order_id(self, order_id: str | None, success: str | None) -> int | None:
        """Id zamowienia, jesli przekierowanie z bramki oznacza sukces i zamowienie istnieje."""
        if success != "true" or not order_id:
            return None
        try:
            oid = int(order_id)
        except ValueError:
            return None
        order = self.orders.get_order(oid)
        return order.id if order else None

    # -----------------------------------------------------
    def _get_owned_order(self, actor: Actor, order_id: int) -> OrderModel:
        order = self.orders.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found", field="orderId")
        if order.user_id is not None and order.user_id != actor.id:
            raise AuthorizationError("Not authorized to access this order")
        return order

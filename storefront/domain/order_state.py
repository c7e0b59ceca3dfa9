"""
Order status state machine.

Initialized -> Pending -> Processing -> Shipped -> Delivered -> Completed
with Cancelled as the failure/abandon exit and Refunded reachable from every
paid state. Only the transitions in ``ALLOWED_TRANSITIONS`` are legal.
"""
from enum import Enum

from storefront.domain.errors import InvalidTransitionError


class OrderStatus(str, Enum):
    INITIALIZED = "Initialized"
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.INITIALIZED: frozenset(
        {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.PENDING: frozenset(
        {OrderStatus.INITIALIZED, OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    ),
    OrderStatus.PROCESSING: frozenset(
        {OrderStatus.SHIPPED, OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.SHIPPED: frozenset(
        {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED, OrderStatus.REFUNDED}),
    OrderStatus.COMPLETED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}

# statusy, z ktorych mozna oznaczyc zamowienie jako oplacone
PAYABLE_STATUSES = frozenset({OrderStatus.INITIALIZED, OrderStatus.PENDING})

# statusy zamowienia oplaconego i w realizacji
PAID_STATUSES = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED}
)

# statusy, po ktorych towar wraca na magazyn
RESTOCKING_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})

# przejscia do Processing ida wylacznie przez potwierdzenie platnosci
PAYMENT_ONLY_TARGETS = frozenset({OrderStatus.PROCESSING})


def can_transition(current: OrderStatus | str, target: OrderStatus | str, is_paid: bool = False) -> bool:
    current = OrderStatus(current)
    target = OrderStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        return False
    # zwrot ma sens tylko gdy pieniadze wplynely
    if target is OrderStatus.REFUNDED and not is_paid:
        return False
    return True


def ensure_transition(current: OrderStatus | str, target: OrderStatus | str, is_paid: bool = False) -> OrderStatus:
    """Return ``target`` as an ``OrderStatus`` or raise ``InvalidTransitionError``."""
    if not can_transition(current, target, is_paid=is_paid):
        raise InvalidTransitionError(OrderStatus(current).value, OrderStatus(target).value)
    return OrderStatus(target)

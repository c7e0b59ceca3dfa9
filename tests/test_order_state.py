import pytest

from storefront.domain.errors import InvalidTransitionError
from storefront.domain.order_state import (
    ALLOWED_TRANSITIONS,
    OrderStatus,
    can_transition,
    ensure_transition,
)


@pytest.mark.parametrize(
    "current,target",
    [
        ("Initialized", "Pending"),
        ("Pending", "Initialized"),
        ("Pending", "Processing"),
        ("Processing", "Shipped"),
        ("Shipped", "Delivered"),
        ("Delivered", "Completed"),
        ("Pending", "Cancelled"),
    ],
)
def test_forward_transitions_are_allowed(current, target):
    assert can_transition(current, target, is_paid=True)


@pytest.mark.parametrize(
    "current,target",
    [
        ("Initialized", "Shipped"),
        ("Processing", "Pending"),
        ("Completed", "Cancelled"),
        ("Refunded", "Processing"),
        ("Cancelled", "Pending"),
    ],
)
def test_backward_and_skipping_transitions_are_rejected(current, target):
    assert not can_transition(current, target, is_paid=True)


def test_refund_requires_payment():
    assert not can_transition(OrderStatus.CANCELLED, OrderStatus.REFUNDED, is_paid=False)
    assert can_transition(OrderStatus.CANCELLED, OrderStatus.REFUNDED, is_paid=True)


def test_refunded_is_terminal():
    assert ALLOWED_TRANSITIONS[OrderStatus.REFUNDED] == frozenset()


def test_ensure_transition_raises_with_field():
    with pytest.raises(InvalidTransitionError) as exc:
        ensure_transition("Initialized", "Delivered")

    assert exc.value.status_code == 400
    assert exc.value.to_dict()["field"] == "status"
    assert "Initialized" in exc.value.message

# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_actor
from storefront.data.database import get_db
from storefront.domain.actor import Actor
from storefront.domain.schemas import OrderOut, OrderUpdate
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderOut])
def list_orders(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """
    Zamówienia uzytkownika, najnowsze pierwsze. Admin widzi wszystkie.
    """
    return OrderService(db).list_orders(actor)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Pobiera szczegóły zamówienia.
    """
    return OrderService(db).get_order(actor, order_id)


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return OrderService(db).update_order(actor, order_id, payload)


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Usuwa nieoplacone zamówienie (tylko admin).
    """
    OrderService(db).delete_order(actor, order_id)
    return {"message": "Order removed"}

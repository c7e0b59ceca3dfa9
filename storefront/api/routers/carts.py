# storefront/api/routers/carts.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_actor
from storefront.data.database import get_db
from storefront.domain.actor import Actor
from storefront.domain.schemas import CartItemIn, CartItemUpdate, CartOut
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return CartService(db).get_cart(actor)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return CartService(db).add_item(
        actor,
        product_id=payload.product_id,
        quantity=payload.quantity,
        color=payload.color,
        size=payload.size,
    )


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return CartService(db).update_item(
        actor,
        item_id,
        quantity=payload.quantity,
        color=payload.color,
        size=payload.size,
    )


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return CartService(db).remove_item(actor, item_id)


@router.delete("", response_model=CartOut)
def clear_cart(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return CartService(db).clear(actor)

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.actor import Actor
from storefront.domain.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Prosta implementacja cqrs i proste use case dla domeny cart
    commands (add, update, remove, clear) modyfikuja stan
    query (get) tylko odczyt

    Sumy koszyka (total_price, total_items) sa liczone przy kazdej zmianie
    z aktualnych cen produktow - koszyk nie zamraza cen, robi to dopiero
    zamowienie.
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)

    #query - odczyt
    def get_cart(self, actor: Actor) -> Dict[str, Any]:
        cart = self._get_or_create(actor.id)
        return self._to_dict(cart)

    #commands
    def add_item(
        self,
        actor: Actor,
        product_id: int,
        quantity: int = 1,
        color: str | None = None,
        size: str | None = None,
    ) -> Dict[str, Any]:

        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")

        product = self.products.get_product(product_id)
        if not product or not product.active:
            raise NotFoundError("Product not found", field="productId")

        cart = self._get_or_create(actor.id)
        old_version = cart.version

        # ten sam produkt i wariant -> zwiekszamy ilosc zamiast dublowac pozycje
        existing_item = self.repo.find_line(cart.id, product_id, color, size)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)
        other_lines = self._quantity_in_other_lines(
            cart.id, product_id, existing_item.id if existing_item else None
        )

        if product.quantity < new_quantity + other_lines:
            raise InsufficientStockError(product.id, product.name, product.quantity, field="quantity")

        if existing_item:
            logger.info(
                f"Produkt {product_id} już jest w koszyku {cart.id}, zwiekszam ilosc "
                f"z {existing_item.quantity} do {new_quantity}"
            )
            existing_item.quantity = new_quantity
        else:
            logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    quantity=quantity,
                    color=color,
                    size=size,
                )
            )

        return self._save(actor, cart.id, old_version)

    def update_item(
        self,
        actor: Actor,
        item_id: int,
        quantity: int | None = None,
        color: str | None = None,
        size: str | None = None,
    ) -> Dict[str, Any]:

        if quantity is not None and quantity < 1:
            raise ValidationError("Quantity must be at least 1", field="quantity")

        cart = self.repo.get_cart_by_user(actor.id)
        if not cart:
            raise NotFoundError("Cart not found")
        old_version = cart.version

        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFoundError("Item not found in cart", field="itemId")

        if quantity is not None:
            product = self.products.get_product(item.product_id)
            if not product:
                raise NotFoundError("Product no longer exists", field="itemId")
            other_lines = self._quantity_in_other_lines(cart.id, item.product_id, item.id)
            if product.quantity < quantity + other_lines:
                raise InsufficientStockError(product.id, product.name, product.quantity, field="quantity")
            item.quantity = quantity

        if color:
            item.color = color
        if size:
            item.size = size

        return self._save(actor, cart.id, old_version)

    def remove_item(self, actor: Actor, item_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(actor.id)
        if not cart:
            raise NotFoundError("Cart not found")
        old_version = cart.version

        logger.info(f"Usuwanie pozycji {item_id} z koszyka {cart.id}")
        if self.repo.delete_cart_item(cart.id, item_id) == 0:
            self.repo.rollback()
            raise NotFoundError("Item not found in cart", field="itemId")

        return self._save(actor, cart.id, old_version)

    def clear(self, actor: Actor) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(actor.id)
        if not cart:
            raise NotFoundError("Cart not found")
        old_version = cart.version

        self.repo.clear_items(cart.id)
        logger.info(f"Koszyk {cart.id} wyczyszczony")

        return self._save(actor, cart.id, old_version)

    # -----------------------------------------------------------------
    def _get_or_create(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        try:
            created = self.repo.create_cart(
                CartModel(user_id=user_id, version=1, total_price=Decimal("0.00"), total_items=0)
            )
            logger.info(f"Utworzono nowy koszyk {created.id} dla użytkownika {user_id}")
            return created
        except IntegrityError:
            # rownolegle zapytanie utworzylo juz koszyk (unique user_id)
            self.repo.rollback()
            cart = self.repo.get_cart_by_user(user_id)
            if cart is None:
                raise
            return cart

    def _quantity_in_other_lines(self, cart_id: int, product_id: int, exclude_item_id: int | None) -> int:
        # inne warianty tego samego produktu korzystaja z tego samego stanu
        return sum(
            i.quantity
            for i in self.repo.get_cart_items(cart_id)
            if i.product_id == product_id and i.id != exclude_item_id
        )

    def _totals(self, items: list[CartItemModel]) -> tuple[Decimal, int]:
        products = self.products.get_products(i.product_id for i in items)
        total_price = Decimal("0.00")
        total_items = 0
        for item in items:
            product = products.get(item.product_id)
            # produkt usuniety z katalogu - pomijamy w sumach
            if product is None:
                continue
            total_price += Decimal(product.price) * item.quantity
            total_items += item.quantity
        return total_price, total_items

    def _save(self, actor: Actor, cart_id: int, old_version: int) -> Dict[str, Any]:
        self.repo.flush()
        total_price, total_items = self._totals(self.repo.get_cart_items(cart_id))

        # Optimistic locking warunek na wersje
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart_id,
            old_version=old_version,
            new_data={
                "version": old_version + 1,
                "total_price": total_price,
                "total_items": total_items,
                "updated_at": datetime.now(timezone.utc),
            },
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConflictError(
                "Cart was modified by another request, please retry",
                field="cart",
            )

        self.repo.commit()
        logger.info(f"Koszyk {cart_id} zapisany, nowa wersja: {old_version + 1}")

        return self.get_cart(actor)

    def _to_dict(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)
        products = self.products.get_products(i.product_id for i in items)

        out = []
        for i in items:
            product = products.get(i.product_id)
            out.append({
                "id": i.id,
                "product_id": i.product_id,
                "name": product.name if product else None,
                "price": product.price if product else None,
                "image": product.image if product else None,
                "available": product.quantity if product else None,
                "quantity": i.quantity,
                "color": i.color,
                "size": i.size,
            })

        #dict przyksztalcany w jsona
        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "items": out,
            "total_price": cart.total_price,
            "total_items": cart.total_items,
            "version": cart.version,
        }

# storefront/data/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, Numeric, CheckConstraint

from storefront.data.database import Base


class ProductModel(Base):
    """Pola katalogu potrzebne do checkoutu; quantity/sold zmienia tylko InventoryLedger."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    image = Column(String, nullable=True)

    quantity = Column(Integer, nullable=False, default=0)
    sold = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("sold >= 0", name="ck_products_sold_non_negative"),
    )

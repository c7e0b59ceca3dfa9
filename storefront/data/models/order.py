# storefront/data/models/order.py
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Boolean, JSON, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    # null dla zamowien goscia
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String, nullable=True)

    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String, nullable=False)
    shipping_method = Column(String, nullable=False, default="Standard")

    items_price = Column(Numeric(12, 2), nullable=False)
    tax_price = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_price = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    # liczone raz przy tworzeniu, nigdy nie przeliczane
    total = Column(Numeric(12, 2), nullable=False)

    status = Column(String, nullable=False, default="Initialized", index=True)

    # wynik z bramki platnosci
    payment_id = Column(String, nullable=True)
    payment_status = Column(String, nullable=True)
    payment_update_time = Column(String, nullable=True)
    gateway_reference = Column(String, nullable=True, index=True)

    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    # True dokladnie wtedy, gdy pozycje sa odjete ze stanu magazynowego
    inventory_committed = Column(Boolean, nullable=False, default=False)

    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    tracking_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
        lazy="selectin",
    )

    @property
    def payment_result(self):
        if self.payment_id is None and self.payment_status is None:
            return None
        return {
            "id": self.payment_id,
            "status": self.payment_status,
            "update_time": self.payment_update_time,
        }

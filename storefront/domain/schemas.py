# storefront/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AddressType = Literal["shipping", "billing", "both"]
ShippingMethod = Literal["Standard", "Express", "Overnight"]
OrderStatusName = Literal[
    "Initialized",
    "Pending",
    "Processing",
    "Shipped",
    "Delivered",
    "Completed",
    "Cancelled",
    "Refunded",
]


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------
class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    email: Optional[str] = Field(None, max_length=255)


class UserRead(BaseModel):
    id: int
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# cart
# ---------------------------------------------------------------------------
class CartItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, alias="productId")
    quantity: int = Field(1, ge=1)
    color: Optional[str] = None
    size: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CartItemUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=1)
    color: Optional[str] = None
    size: Optional[str] = None


class CartItemOut(BaseModel):
    id: int
    product_id: int
    name: Optional[str] = None
    price: Optional[Decimal] = None
    image: Optional[str] = None
    available: Optional[int] = None
    quantity: int
    color: Optional[str] = None
    size: Optional[str] = None


class CartOut(BaseModel):
    id: int
    user_id: int
    items: List[CartItemOut]
    total_price: Decimal
    total_items: int
    version: int


# ---------------------------------------------------------------------------
# addresses
# ---------------------------------------------------------------------------
class AddressIn(BaseModel):
    name: str = Field(..., min_length=1)
    address_line1: str = Field(..., min_length=1, alias="addressLine1")
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1, alias="postalCode")
    country: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    is_default: bool = Field(False, alias="isDefault")
    type: AddressType = "both"

    model_config = ConfigDict(populate_by_name=True)


class AddressUpdate(BaseModel):
    name: Optional[str] = None
    address_line1: Optional[str] = Field(None, alias="addressLine1")
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None
    phone: Optional[str] = None
    is_default: Optional[bool] = Field(None, alias="isDefault")
    type: Optional[AddressType] = None

    model_config = ConfigDict(populate_by_name=True)


class AddressOut(BaseModel):
    id: int
    user_id: int
    name: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str
    is_default: bool
    type: str

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# checkout
# ---------------------------------------------------------------------------
class ShippingAddressIn(BaseModel):
    """Adres podany wprost w zamowieniu; kompletnosc sprawdza checkout."""

    name: Optional[str] = None
    address: Optional[str] = None
    address2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    address_id: Optional[int] = Field(None, alias="addressId")
    shipping_address: Optional[ShippingAddressIn] = Field(None, alias="shippingAddress")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    shipping_method: ShippingMethod = Field("Standard", alias="shippingMethod")

    model_config = ConfigDict(populate_by_name=True)


class PaymentIntentIn(BaseModel):
    order_id: int = Field(..., alias="orderId")

    model_config = ConfigDict(populate_by_name=True)


class PaymentIntentOut(BaseModel):
    client_secret: Optional[str] = Field(None, alias="clientSecret")
    intention_id: Optional[str] = Field(None, alias="intentionId")
    checkout_url: str = Field(..., alias="checkoutUrl")

    model_config = ConfigDict(populate_by_name=True)


class ConfirmPaymentIn(BaseModel):
    order_id: int = Field(..., alias="orderId")
    transaction_id: Optional[str] = Field(None, alias="transactionId")
    callback_data: Optional[dict[str, Any]] = Field(None, alias="callbackData")

    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# orders
# ---------------------------------------------------------------------------
class OrderItemOut(BaseModel):
    product_id: int
    name: str
    price: Decimal
    quantity: int
    image: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentResultOut(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    email: Optional[str] = None
    items: List[OrderItemOut]
    shipping_address: dict[str, Any]
    payment_method: str
    shipping_method: str
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    discount_amount: Decimal
    total: Decimal
    status: str
    payment_result: Optional[PaymentResultOut] = None
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderEnvelope(BaseModel):
    message: str
    order: OrderOut


class OrderUpdate(BaseModel):
    """Zmiany wykonywane przez operatora sklepu."""

    status: Optional[OrderStatusName] = None
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    notes: Optional[str] = None
    shipping_method: Optional[ShippingMethod] = Field(None, alias="shippingMethod")
    is_delivered: Optional[bool] = Field(None, alias="isDelivered")

    model_config = ConfigDict(populate_by_name=True)


class PaymentMethodOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    processor: str
    icon: Optional[str] = None

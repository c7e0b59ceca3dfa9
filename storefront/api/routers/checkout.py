# storefront/api/routers/checkout.py
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_actor, get_lock_service, get_payment_methods
from storefront.data.database import get_db
from storefront.domain.actor import Actor
from storefront.domain.schemas import (
    ConfirmPaymentIn,
    OrderCreate,
    OrderEnvelope,
    PaymentIntentIn,
    PaymentIntentOut,
)
from storefront.payments.registry import PaymentMethodRegistry
from storefront.services.checkout_service import CheckoutService
from storefront.services.lock_service import LockService
from storefront.utils.settings import PAYMENT_FAILURE_URL, PAYMENT_SUCCESS_URL

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(
    db: Session = Depends(get_db),
    payment_methods: PaymentMethodRegistry = Depends(get_payment_methods),
    lock_service: LockService = Depends(get_lock_service),
) -> CheckoutService:
    return CheckoutService(db, payment_methods, lock_service)


@router.post("/order", response_model=OrderEnvelope, status_code=201)
def create_order(
    payload: OrderCreate,
    actor: Actor = Depends(get_current_actor),
    svc: CheckoutService = Depends(get_service),
):
    """
    Tworzy zamówienie z koszyka. Stan magazynowy jest tylko sprawdzany.
    """
    order = svc.create_order(
        actor,
        address_id=payload.address_id,
        shipping_address=payload.shipping_address,
        payment_method=payload.payment_method,
        shipping_method=payload.shipping_method,
    )
    return {"message": "Order created successfully", "order": order}


@router.post("/payment-intent", response_model=PaymentIntentOut, response_model_by_alias=True)
def create_payment_intent(
    payload: PaymentIntentIn,
    actor: Actor = Depends(get_current_actor),
    svc: CheckoutService = Depends(get_service),
):
    intention = svc.create_payment_intention(actor, payload.order_id)
    return PaymentIntentOut(
        client_secret=intention.client_secret,
        intention_id=intention.intention_id,
        checkout_url=intention.checkout_url,
    )


@router.post("/confirm-payment", response_model=OrderEnvelope)
def confirm_payment(
    payload: ConfirmPaymentIn,
    actor: Actor = Depends(get_current_actor),
    svc: CheckoutService = Depends(get_service),
):
    order, applied = svc.confirm_payment(
        actor,
        payload.order_id,
        callback_data=payload.callback_data,
        transaction_id=payload.transaction_id,
    )
    message = "Payment confirmed successfully" if applied else "Order is already paid"
    return {"message": message, "order": order}


@router.get("/payment-redirect")
def payment_redirect(
    order_id: str | None = Query(None, alias="orderId"),
    success: str | None = Query(None),
    svc: CheckoutService = Depends(get_service),
):
    """Powrot z bramki - sam redirect, o statusie decyduje webhook/confirm."""
    found = svc.redirect_order_id(order_id, success)
    if found is None:
        return RedirectResponse(PAYMENT_FAILURE_URL, status_code=302)
    return RedirectResponse(f"{PAYMENT_SUCCESS_URL}?{urlencode({'orderId': found})}", status_code=302)

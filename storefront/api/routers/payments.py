# storefront/api/routers/payments.py
import json

from fastapi import APIRouter, Depends, Request

from storefront.api.deps import get_payment_methods
from storefront.domain.schemas import PaymentMethodOut
from storefront.payments.registry import PaymentMethodRegistry
from storefront.tasks.webhooks import reconcile_payment_webhook_task
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payment", tags=["payment"])


@router.post("/webhook")
async def payment_webhook(request: Request):
    """
    Callback bramki. Zawsze 200 - przetwarzanie idzie do taska celery,
    inaczej bramka ponawia wysylke w nieskonczonosc.
    """
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError as e:
        logger.error(f"Webhook with invalid JSON body dropped: {e}")
        return {"received": True}

    try:
        reconcile_payment_webhook_task.delay(body, dict(request.query_params))
    except Exception as e:
        tx_id = (body.get("obj") or {}).get("id") if isinstance(body, dict) else None
        logger.error(f"Failed to enqueue webhook tx {tx_id}, needs manual reconciliation: {e}")
    return {"received": True}


@router.get("/methods", response_model=list[PaymentMethodOut])
def list_payment_methods(payment_methods: PaymentMethodRegistry = Depends(get_payment_methods)):
    return [m.to_dict() for m in payment_methods.list_methods()]

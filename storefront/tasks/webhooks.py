# storefront/tasks/webhooks.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.domain.errors import ConflictError
from storefront.payments.registry import build_payment_registry
from storefront.services.lock_service import LockService
from storefront.services.webhook_reconciler import WebhookReconciler, reconcile_safely
from storefront.utils.logging import get_logger

logger = get_logger(__name__)
lock_service = LockService()
payment_methods = build_payment_registry()


@celery_app.task(
    bind=True,
    name="storefront.tasks.webhooks.reconcile_payment_webhook_task",
    max_retries=5,
    default_retry_delay=10,
)
def reconcile_payment_webhook_task(self, body, query=None):
    """
    Przetwarza callback bramki po tym, jak endpoint odpowiedzial juz 200.
    Zajety lock platnosci -> ponowienie; reszta bledow tylko w logach.
    """
    logger.info("Payment webhook task started")

    db = SessionLocal()
    try:
        reconciler = WebhookReconciler(db, payment_methods, lock_service)
        outcome = reconcile_safely(reconciler, body, query)
    except ConflictError as e:
        logger.warning(f"{e.message}, retrying webhook")
        raise self.retry(exc=e)
    finally:
        db.close()

    label = outcome.value if outcome is not None else "failed"
    logger.info(f"Payment webhook processed: {label}")
    return label

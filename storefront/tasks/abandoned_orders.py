# storefront/tasks/abandoned_orders.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.order_service import OrderService
from storefront.utils.logging import get_logger
from storefront.utils.settings import ORDER_PAYMENT_TIMEOUT_MINUTES

logger = get_logger(__name__)


@celery_app.task(name="storefront.tasks.abandoned_orders.cancel_abandoned_orders_task")
def cancel_abandoned_orders_task(timeout_minutes: int = ORDER_PAYMENT_TIMEOUT_MINUTES):
    logger.info("Cancel abandoned orders task started")

    db = SessionLocal()
    try:
        cancelled = OrderService(db).cancel_abandoned_orders(timeout_minutes)
        logger.info(f"Cancelled {cancelled} abandoned orders")
        return cancelled
    finally:
        db.close()

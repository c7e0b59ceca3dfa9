# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_order_paid(user_id: int | None, order_id: int):
        NotificationService._enqueue(user_id, order_id, "paid")

    @staticmethod
    def send_order_status(user_id: int | None, order_id: int, status: str):
        NotificationService._enqueue(user_id, order_id, status)

    @staticmethod
    def _enqueue(user_id: int | None, order_id: int, event: str):
        # zmiana zamowienia jest juz zapisana, brak brokera nie moze jej cofnac
        try:
            send_order_notification_task.delay(user_id, order_id, event)
        except Exception as e:
            logger.error(f"Failed to enqueue notification '{event}' for order {order_id}: {e}")


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int | None, order_id: int, event: str):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    recipient = f"User {user_id}" if user_id is not None else "Guest"
    logger.info(f"[NOTIFICATION] {recipient}: Order {order_id} -> {event}")
    return {"user_id": user_id, "order_id": order_id, "event": event, "status": "sent"}

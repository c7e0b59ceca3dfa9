# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
    ABANDONED_ORDER_SWEEP_SECONDS,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "storefront.tasks.abandoned_orders",
    "storefront.tasks.webhooks",
    "storefront.services.notification_service",
)

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "cancel-abandoned-orders": {
        "task": "storefront.tasks.abandoned_orders.cancel_abandoned_orders_task",
        "schedule": ABANDONED_ORDER_SWEEP_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
# w testach taski wykonuja sie synchronicznie, bez brokera
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER

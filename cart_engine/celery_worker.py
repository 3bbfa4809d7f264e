# cart_engine/celery_worker.py
from celery import Celery

from cart_engine.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "cart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks must be imported explicitly for the worker to register them
celery_app.conf.imports = ("cart_engine.tasks.expire",)

celery_app.conf.beat_schedule = {
    "expire-carts-every-minute": {
        "task": "cart_engine.tasks.expire.expire_carts_task",
        "schedule": 60.0,
    },
    "purge-expired-carts-hourly": {
        "task": "cart_engine.tasks.expire.purge_expired_carts_task",
        "schedule": 60.0 * 60,
    },
}

celery_app.conf.timezone = "UTC"

# automart/celery_worker.py
from celery import Celery

from automart.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CONNECTIVITY_CHECK_SECONDS,
)

celery_app = Celery(
    "automart",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# tasks have to be imported explicitly to get registered
celery_app.conf.imports = ("automart.tasks.background_sync",)

celery_app.conf.beat_schedule = {
    "check-connectivity": {
        "task": "automart.tasks.background_sync.check_connectivity_task",
        "schedule": CONNECTIVITY_CHECK_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"

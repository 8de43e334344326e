from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "form_builder",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks.uploads"],
)

celery_app.conf.beat_schedule = {
    "sweep_expired_uploads": {"task": "app.workers.tasks.uploads.sweep_expired_uploads", "schedule": 86400.0},
}
celery_app.conf.timezone = "UTC"

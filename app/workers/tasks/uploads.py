from __future__ import annotations

from app.services.file_storage import UPLOADS_ROOT, sweep_expired_files
from app.services.s3_storage import get_s3_storage
from app.workers.celery_app import celery_app


@celery_app.task(name="app.workers.tasks.uploads.sweep_expired_uploads")
def sweep_expired_uploads():
    result = sweep_expired_files(get_s3_storage(), UPLOADS_ROOT)
    return {
        "scanned_objects": int(result.scanned),
        "deleted_objects": int(result.deleted),
        "failed_objects": int(result.failed),
    }

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote, unquote

from botocore.exceptions import ClientError

from app.core.config import settings
from app.core.errors import InvalidInput, NotFound
from app.models.common import as_utc, utcnow
from app.services.file_validation import ValidatedFile
from app.services.s3_storage import S3Storage, is_missing_object_error

_LOG = logging.getLogger("app.files")

UPLOADS_ROOT = "uploads/"

META_ORIGINAL_NAME = "original-name"
META_UPLOADED_BY = "uploaded-by"
META_UPLOADED_AT = "uploaded-at"


@dataclass
class SweepResult:
    scanned: int = 0
    deleted: int = 0
    failed: int = 0


def user_prefix(uid: str) -> str:
    return f"{UPLOADS_ROOT}{uid}/"


def _object_key(uid: str, file_name: str) -> str:
    name = str(file_name or "").strip()
    if not name or "/" in name or "\\" in name or name in {".", ".."}:
        raise InvalidInput("Invalid file name", details={"fileName": name})
    return user_prefix(uid) + name


def _parse_uploaded_at(raw: str | None) -> datetime | None:
    value = str(raw or "").strip()
    if not value:
        return None
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _retention_cutoff(now: datetime | None = None) -> datetime:
    return (now or utcnow()) - timedelta(days=int(settings.UPLOAD_RETENTION_DAYS))


def store_upload(storage: S3Storage, uid: str, validated: ValidatedFile) -> dict[str, Any]:
    file_name = f"{uuid.uuid4()}.{validated.extension}"
    key = user_prefix(uid) + file_name
    storage.put_object(
        key,
        validated.data,
        content_type=validated.content_type,
        metadata={
            # S3 user metadata is ASCII-only.
            META_ORIGINAL_NAME: quote(validated.original_name, safe=""),
            META_UPLOADED_BY: uid,
            META_UPLOADED_AT: utcnow().isoformat(),
        },
    )
    _LOG.info("file stored key=%s size=%s type=%s", key, validated.size, validated.content_type)
    return {
        "originalName": validated.original_name,
        "fileName": file_name,
        "contentType": validated.content_type,
        "size": validated.size,
        "url": storage.create_presigned_get_url(key),
    }


def list_user_files(storage: S3Storage, uid: str) -> list[dict[str, Any]]:
    files: list[dict[str, Any]] = []
    for item in storage.list_objects(user_prefix(uid)):
        key = str(item.get("Key") or "")
        try:
            head = storage.head_object(key)
        except ClientError as exc:
            # Deleted between list and head.
            if is_missing_object_error(exc):
                continue
            raise
        metadata = head.get("Metadata") or {}
        file_name = key.rsplit("/", 1)[-1]
        files.append(
            {
                "fileName": file_name,
                "originalName": unquote(metadata.get(META_ORIGINAL_NAME) or "") or file_name,
                "contentType": head.get("ContentType"),
                "size": int(head.get("ContentLength") or item.get("Size") or 0),
                "uploadedAt": metadata.get(META_UPLOADED_AT),
                "url": storage.create_presigned_get_url(key),
            }
        )
    return files


def delete_user_file(storage: S3Storage, uid: str, file_name: str) -> None:
    key = _object_key(uid, file_name)
    if not storage.exists(key):
        raise NotFound("File not found.")
    storage.delete_object(key)
    _LOG.info("file deleted key=%s", key)


def delete_objects_quietly(storage: S3Storage, keys: list[str]) -> int:
    deleted = 0
    for key in keys:
        try:
            storage.delete_object(key)
            deleted += 1
        except ClientError as exc:
            if not is_missing_object_error(exc):
                _LOG.warning("failed to delete object key=%s error=%s", key, type(exc).__name__)
    return deleted


def sweep_expired_files(storage: S3Storage, prefix: str, *, now: datetime | None = None) -> SweepResult:
    """Delete objects under ``prefix`` older than the retention period.

    Per-object failures are logged and skipped; listing failures are logged
    and end the sweep early. Never raises.
    """
    result = SweepResult()
    cutoff = _retention_cutoff(now)
    try:
        items = list(storage.list_objects(prefix))
    except Exception as exc:
        _LOG.warning("retention sweep listing failed prefix=%s error=%s", prefix, type(exc).__name__)
        return result

    for item in items:
        key = str(item.get("Key") or "")
        result.scanned += 1
        try:
            head = storage.head_object(key)
            uploaded_at = _parse_uploaded_at((head.get("Metadata") or {}).get(META_UPLOADED_AT))
            if uploaded_at is None:
                uploaded_at = as_utc(item.get("LastModified") or head.get("LastModified"))
            if uploaded_at is None or uploaded_at >= cutoff:
                continue
            storage.delete_object(key)
            result.deleted += 1
            _LOG.info("retention sweep deleted key=%s uploaded_at=%s", key, uploaded_at.isoformat())
        except Exception as exc:
            result.failed += 1
            _LOG.warning("retention sweep failed key=%s error=%s", key, type(exc).__name__)
    return result


def sweep_user_files(storage: S3Storage, uid: str) -> SweepResult:
    return sweep_expired_files(storage, user_prefix(uid))

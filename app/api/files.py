from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, UploadFile

from app.core.config import settings
from app.core.deps import client_ip, get_current_identity
from app.core.errors import RateLimited
from app.schemas.files import FileDeleted, FileListItem, FileUploaded
from app.services.file_storage import delete_user_file, list_user_files, store_upload, sweep_user_files
from app.services.file_validation import max_file_bytes, validate_upload
from app.services.identity import IdentityClaim
from app.services.rate_limit import get_rate_limiter, upload_rate_limit_key
from app.services.s3_storage import get_s3_storage

router = APIRouter()


def _describe_window(seconds: int) -> str:
    if seconds % 60 == 0:
        minutes = seconds // 60
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} seconds"


def _enforce_upload_rate_limit(http_request: Request, identity: IdentityClaim) -> None:
    limit = int(settings.UPLOAD_RATE_LIMIT)
    window = int(settings.UPLOAD_RATE_LIMIT_WINDOW_SECONDS)
    key = upload_rate_limit_key(uid=identity.uid, ip=client_ip(http_request))
    result = get_rate_limiter().hit(key, limit=limit, window_seconds=window)
    if result.allowed:
        return
    raise RateLimited(
        "Too many file uploads",
        details={
            "windowMs": _describe_window(window),
            "maxUploads": limit,
            "nextUploadAllowed": result.reset_at.isoformat().replace("+00:00", "Z"),
        },
        headers={"Retry-After": str(max(result.retry_after_seconds, 1))},
    )


def _read_bounded(upload: UploadFile) -> bytes:
    # One byte past the ceiling is enough to report the file as too large.
    return upload.file.read(max_file_bytes() + 1)


@router.post("/upload", response_model=FileUploaded, status_code=201)
def upload_file(
    http_request: Request,
    file: UploadFile | None = File(default=None),
    identity: IdentityClaim = Depends(get_current_identity),
):
    _enforce_upload_rate_limit(http_request, identity)
    storage = get_s3_storage()
    sweep_user_files(storage, identity.uid)

    if file is None:
        validated = validate_upload(None, None, None)
    else:
        validated = validate_upload(file.filename, file.content_type, _read_bounded(file), size=file.size)
    return FileUploaded(file=store_upload(storage, identity.uid, validated))


@router.get("", response_model=list[FileListItem])
def list_files(identity: IdentityClaim = Depends(get_current_identity)):
    storage = get_s3_storage()
    sweep_user_files(storage, identity.uid)
    return list_user_files(storage, identity.uid)


@router.delete("/{file_name}", response_model=FileDeleted)
def delete_file(file_name: str, identity: IdentityClaim = Depends(get_current_identity)):
    delete_user_file(get_s3_storage(), identity.uid, file_name)
    return FileDeleted()

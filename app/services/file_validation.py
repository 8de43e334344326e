"""Upload validation: presence, size, declared MIME, extension and content signature.

Checks run cheapest first and stop at the first failure.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from app.core.config import settings
from app.core.errors import ContentMismatch, FileTooLarge, InvalidExtension, InvalidType, NoFile

MIME_TEXT = "text/plain"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MIME_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_ZIP = b"\x50\x4B\x03\x04"
_OLE = b"\xD0\xCF\x11\xE0"


@dataclass(frozen=True)
class FileType:
    extensions: tuple[str, ...]
    signatures: tuple[bytes, ...] = ()


# Insertion order is the order reported back to clients.
FILE_TYPES: dict[str, FileType] = {
    "image/jpeg": FileType(("jpg", "jpeg"), (b"\xFF\xD8\xFF", b"\xFF\xD8\xFF\xE0", b"\xFF\xD8\xFF\xE1")),
    "image/png": FileType(("png",), (b"\x89\x50\x4E\x47",)),
    "image/webp": FileType(("webp",), (b"\x52\x49\x46\x46",)),
    "application/pdf": FileType(("pdf",), (b"\x25\x50\x44\x46",)),
    "application/msword": FileType(("doc",), (_OLE,)),
    MIME_DOCX: FileType(("docx",), (_ZIP,)),
    "application/vnd.ms-excel": FileType(("xls",), (_OLE,)),
    MIME_XLSX: FileType(("xlsx",), (_ZIP,)),
    MIME_TEXT: FileType(("txt",)),
}

ALLOWED_MIME_TYPES = list(FILE_TYPES)
ALLOWED_EXTENSIONS = [ext for file_type in FILE_TYPES.values() for ext in file_type.extensions]

_TEXT_CONTROL_BYTES = frozenset({0x09, 0x0A, 0x0D})


@dataclass(frozen=True)
class ValidatedFile:
    original_name: str
    content_type: str
    extension: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def max_file_bytes() -> int:
    return int(settings.UPLOAD_MAX_FILE_MB) * 1024 * 1024


def format_megabytes(size_bytes: int) -> str:
    """Round half-up to one decimal, ``5.0`` renders as ``5MB``."""
    value = math.floor(int(size_bytes) / 1024 / 1024 * 10 + 0.5) / 10
    return f"{value:g}MB"


def file_extension(file_name: str | None) -> str:
    name = str(file_name or "")
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].strip().lower()


def ensure_size_within_limit(size_bytes: int) -> None:
    limit = max_file_bytes()
    if int(size_bytes) > limit:
        raise FileTooLarge(
            details={
                "maxSize": format_megabytes(limit),
                "receivedSize": format_megabytes(size_bytes),
            }
        )


def is_printable_text(data: bytes) -> bool:
    return all(0x20 <= byte <= 0x7E or byte in _TEXT_CONTROL_BYTES for byte in data)


def matches_signature(data: bytes, signatures: tuple[bytes, ...]) -> bool:
    return any(data.startswith(signature) for signature in signatures)


def validate_upload(
    file_name: str | None,
    content_type: str | None,
    data: bytes | None,
    *,
    size: int | None = None,
) -> ValidatedFile:
    """``size`` is the full payload size when ``data`` was read with a bound."""
    if data is None or not str(file_name or "").strip():
        raise NoFile()

    ensure_size_within_limit(len(data) if size is None else max(int(size), len(data)))

    declared = str(content_type or "").strip().lower()
    file_type = FILE_TYPES.get(declared)
    if file_type is None:
        raise InvalidType(details={"allowedTypes": ALLOWED_MIME_TYPES, "receivedType": declared})

    extension = file_extension(file_name)
    if extension not in file_type.extensions:
        raise InvalidExtension(
            details={
                "expectedExtensions": list(file_type.extensions),
                "receivedExtension": extension,
                "mimeType": declared,
            }
        )

    if declared == MIME_TEXT:
        if not is_printable_text(data):
            raise ContentMismatch(
                "Invalid text file content",
                details={"mimeType": declared, "reason": "File contains non-printable characters"},
            )
    elif not matches_signature(data, file_type.signatures):
        raise ContentMismatch(
            details={
                "declaredType": declared,
                "extension": extension,
                "suggestion": "The file appears to be corrupted or its extension has been changed",
            }
        )

    return ValidatedFile(
        original_name=str(file_name),
        content_type=declared,
        extension=extension,
        data=data,
    )

from typing import Optional

from pydantic import BaseModel

from app.schemas.forms import CamelModel


class StoredFile(CamelModel):
    original_name: str
    file_name: str
    content_type: str
    size: int
    url: str


class FileUploaded(BaseModel):
    message: str = "File uploaded successfully."
    file: StoredFile


class FileListItem(CamelModel):
    file_name: str
    original_name: str
    content_type: Optional[str] = None
    size: int
    uploaded_at: Optional[str] = None
    url: str


class FileDeleted(BaseModel):
    message: str = "File deleted successfully."

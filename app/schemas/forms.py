from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ElementIn(CamelModel):
    # Unknown element keys (options, placeholder, ...) are kept verbatim.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    label: Optional[str] = None
    required: bool = False
    accepted_types: Optional[List[str]] = None


class FormCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    elements: Optional[List[ElementIn]] = None
    slug: Optional[str] = None
    is_published: Optional[bool] = None


class FormUpdate(CamelModel):
    """Every field is optional; presence in the body (``model_fields_set``) decides what is written."""

    name: Optional[str] = None
    description: Optional[str] = None
    elements: Optional[List[ElementIn]] = None
    slug: Optional[str] = None
    is_published: Optional[bool] = None
    version: Optional[int] = None


class FormRead(CamelModel):
    id: UUID
    owner_id: str
    name: str
    description: str = ""
    elements: List[Dict[str, Any]] = Field(default_factory=list)
    slug: Optional[str] = None
    is_published: bool = False
    responses_count: int = 0
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FormCreated(CamelModel):
    message: str = "Form created successfully."
    form_id: UUID
    data: FormRead


class FormUpdated(CamelModel):
    message: str = "Form updated successfully."
    form_id: UUID
    updated_fields: List[str]
    version: int


class FormDeleted(CamelModel):
    message: str = "Form deleted successfully."
    form_id: UUID
    deleted_responses: int = 0
    deleted_files: int = 0

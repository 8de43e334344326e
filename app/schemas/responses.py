from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.forms import CamelModel


class ResponseSubmit(CamelModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class ResponseCreated(CamelModel):
    message: str = "Response recorded successfully."
    response_id: UUID


class ResponseRead(CamelModel):
    id: UUID
    form_id: UUID
    answers: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str
    respondent_id: Optional[str] = None
    respondent_email: Optional[str] = None

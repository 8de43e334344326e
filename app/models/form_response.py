import uuid

from sqlalchemy import BigInteger, ForeignKey, Index, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from app.db.session import Base
from app.models.common import UUIDMixin, utcnow_ms

class FormResponse(Base, UUIDMixin):
    __tablename__ = "form_responses"
    __table_args__ = (Index("ix_form_responses_form_timestamp", "form_id", "timestamp"),)

    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    answers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=utcnow_ms)  # epoch ms
    respondent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    respondent_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

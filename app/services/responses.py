from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, MissingRequired
from app.models.common import iso_from_ms, utcnow_ms
from app.models.form import Form
from app.models.form_response import FormResponse
from app.services.forms import get_form_or_404
from app.services.identity import IdentityClaim

_LOG = logging.getLogger("app.responses")


def required_element_ids(elements: list[dict[str, Any]] | None) -> list[str]:
    return [str(el.get("id")) for el in (elements or []) if isinstance(el, dict) and el.get("required")]


def missing_required_answers(elements: list[dict[str, Any]] | None, answers: dict[str, Any]) -> list[str]:
    # Presence of the key is what counts, not the answer value.
    answered = set(answers)
    return [element_id for element_id in required_element_ids(elements) if element_id not in answered]


def submit_response(
    db: Session,
    form_id: str,
    answers: dict[str, Any],
    identity: IdentityClaim | None = None,
) -> FormResponse:
    form = get_form_or_404(db, form_id)
    if not form.is_published:
        raise Forbidden("This form is not accepting responses.")

    missing = missing_required_answers(form.elements, answers)
    if missing:
        raise MissingRequired(missing)

    row = FormResponse(
        form_id=form.id,
        answers=dict(answers),
        timestamp=utcnow_ms(),
        respondent_id=identity.uid if identity else None,
        respondent_email=identity.email if identity else None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    # Counted only after the response row is durable; a crash here under-counts.
    db.execute(
        update(Form)
        .where(Form.id == form.id)
        .values(responses_count=Form.responses_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    _LOG.info("response recorded form=%s response=%s", form.id, row.id)
    return row


def list_responses(db: Session, identity: IdentityClaim, form_id: str) -> list[dict[str, Any]]:
    form = get_form_or_404(db, form_id)
    if form.owner_id != identity.uid:
        raise Forbidden("Access denied. You can only view responses to your own forms.")

    stmt = (
        select(FormResponse)
        .where(FormResponse.form_id == form.id)
        .order_by(FormResponse.timestamp.desc(), FormResponse.id.desc())
    )
    return [
        {
            "id": row.id,
            "formId": row.form_id,
            "answers": dict(row.answers or {}),
            "timestamp": iso_from_ms(row.timestamp),
            "respondentId": row.respondent_id,
            "respondentEmail": row.respondent_email,
        }
        for row in db.scalars(stmt).all()
    ]

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, InvalidInput, NotFound
from app.models.common import as_utc, utcnow
from app.models.form import Form
from app.models.form_response import FormResponse
from app.schemas.forms import ElementIn, FormCreate, FormUpdate
from app.services.file_storage import delete_objects_quietly, user_prefix
from app.services.identity import IdentityClaim
from app.services.s3_storage import S3Storage

_LOG = logging.getLogger("app.forms")

# Model attribute -> wire name for fields a PUT may overwrite.
UPDATABLE_FIELDS = {
    "name": "name",
    "description": "description",
    "elements": "elements",
    "slug": "slug",
    "is_published": "isPublished",
}


def _uuid_or_404(raw: str | uuid.UUID) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFound("Form not found.")


def get_form_or_404(db: Session, form_id: str | uuid.UUID) -> Form:
    form = db.get(Form, _uuid_or_404(form_id))
    if form is None:
        raise NotFound("Form not found.")
    return form


def serialize_form(form: Form) -> dict[str, Any]:
    return {
        "id": form.id,
        "ownerId": form.owner_id,
        "name": form.name,
        "description": form.description or "",
        "elements": list(form.elements or []),
        "slug": form.slug,
        "isPublished": bool(form.is_published),
        "responsesCount": int(form.responses_count or 0),
        "version": int(form.version or 1),
        "createdAt": as_utc(form.created_at),
        "updatedAt": as_utc(form.updated_at),
    }


def _require_name(name: str | None) -> str:
    value = str(name or "").strip()
    if not value:
        raise InvalidInput("Form name is required.", details={"field": "name"})
    return value


def normalize_elements(elements: list[ElementIn] | None) -> list[dict[str, Any]]:
    """Validate every element, then return them in storage shape.

    Every offending element is reported, not only the first one.
    """
    if elements is None:
        raise InvalidInput("Form name and elements array are required.", details={"field": "elements"})

    invalid: list[dict[str, Any]] = []
    for index, element in enumerate(elements):
        missing = [field for field in ("type", "label") if not str(getattr(element, field) or "").strip()]
        if missing:
            invalid.append({"index": index, "missing": missing})
    if invalid:
        raise InvalidInput(
            "Each form element must have a type and a label.",
            details={"invalidElements": invalid},
        )

    normalized: list[dict[str, Any]] = []
    for element in elements:
        data = element.model_dump(by_alias=True, exclude_none=True)
        if not str(data.get("id") or "").strip():
            data["id"] = uuid.uuid4().hex
        normalized.append(data)
    return normalized


def create_form(db: Session, identity: IdentityClaim, payload: FormCreate) -> Form:
    name = _require_name(payload.name)
    elements = normalize_elements(payload.elements)
    now = utcnow()
    form = Form(
        owner_id=identity.uid,
        name=name,
        description=payload.description or "",
        elements=elements,
        slug=payload.slug or None,
        is_published=bool(payload.is_published) if payload.is_published is not None else False,
        responses_count=0,
        version=1,
        created_at=now,
        updated_at=now,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    _LOG.info("form created id=%s owner=%s elements=%s", form.id, form.owner_id, len(elements))
    return form


def list_forms(db: Session, identity: IdentityClaim) -> list[Form]:
    stmt = select(Form).where(Form.owner_id == identity.uid).order_by(Form.created_at.desc())
    return list(db.scalars(stmt).all())


def get_form(db: Session, identity: IdentityClaim, form_id: str) -> Form:
    form = get_form_or_404(db, form_id)
    # Published forms are returned to any authenticated caller without redaction.
    if form.owner_id != identity.uid and not form.is_published:
        raise Forbidden("Forbidden. You do not have access to this form or it is not public.")
    return form


def _version_conflict(expected: int, current: int) -> Conflict:
    return Conflict(
        "Form was modified by another request.",
        details={"expectedVersion": expected, "currentVersion": current},
    )


def _require_owner(form: Form, identity: IdentityClaim, action: str) -> None:
    if form.owner_id != identity.uid:
        raise Forbidden(f"Forbidden. You can only {action} your own forms.")


def update_form(
    db: Session,
    identity: IdentityClaim,
    form_id: str,
    payload: FormUpdate,
    *,
    expected_version: int | None = None,
) -> tuple[Form, list[str]]:
    form = get_form_or_404(db, form_id)
    _require_owner(form, identity, "update")

    present = payload.model_fields_set
    changes: dict[str, Any] = {}
    if "name" in present:
        changes["name"] = _require_name(payload.name)
    if "description" in present:
        changes["description"] = payload.description or ""
    if "elements" in present:
        changes["elements"] = normalize_elements(payload.elements)
    if "slug" in present:
        changes["slug"] = payload.slug
    if "is_published" in present and payload.is_published is not None:
        changes["is_published"] = bool(payload.is_published)

    if not changes:
        raise InvalidInput("No fields to update were provided.")

    version = payload.version if payload.version is not None else expected_version
    if version is not None and int(version) != int(form.version or 1):
        raise _version_conflict(int(version), int(form.version or 1))

    stmt = update(Form).where(Form.id == form.id)
    if version is not None:
        # The write only lands if nobody bumped the version since it was read.
        stmt = stmt.where(Form.version == int(version))
    result = db.execute(
        stmt.values(**changes, updated_at=utcnow(), version=Form.version + 1)
        .execution_options(synchronize_session=False)
    )
    if version is not None and result.rowcount == 0:
        db.rollback()
        raise _version_conflict(int(version), int(form.version or 1))
    db.commit()
    db.refresh(form)
    updated_fields = [UPDATABLE_FIELDS[attribute] for attribute in changes] + ["updatedAt"]
    _LOG.info("form updated id=%s fields=%s version=%s", form.id, ",".join(updated_fields), form.version)
    return form, updated_fields


def _answer_file_keys(answers: dict[str, Any] | None, respondent_id: str | None) -> list[str]:
    """Blob keys referenced by one response that belong to its respondent.

    Anonymous responses own no files, and paths outside the respondent's
    prefix are left alone.
    """
    if not respondent_id:
        return []
    prefix = user_prefix(respondent_id)
    keys: list[str] = []
    for value in (answers or {}).values():
        candidates = value if isinstance(value, list) else [value]
        for candidate in candidates:
            if not isinstance(candidate, dict):
                continue
            path = str(candidate.get("path") or "").strip()
            name = path[len(prefix):]
            if path.startswith(prefix) and name and "/" not in name and ".." not in name:
                keys.append(path)
    return keys


def delete_form(db: Session, storage: S3Storage, identity: IdentityClaim, form_id: str) -> tuple[uuid.UUID, int, int]:
    """Delete the form together with its responses and the files those responses reference.

    Each step is idempotent, so a partially failed delete can simply be retried.
    """
    form = get_form_or_404(db, form_id)
    _require_owner(form, identity, "delete")

    rows = db.execute(
        select(FormResponse.answers, FormResponse.respondent_id).where(FormResponse.form_id == form.id)
    ).all()
    file_keys = sorted({key for answers, respondent_id in rows for key in _answer_file_keys(answers, respondent_id)})

    result = db.execute(delete(FormResponse).where(FormResponse.form_id == form.id))
    deleted_responses = int(result.rowcount or 0)
    db.commit()

    deleted_files = delete_objects_quietly(storage, file_keys) if file_keys else 0

    deleted_id = form.id
    db.delete(form)
    db.commit()
    _LOG.info(
        "form deleted id=%s responses=%s files=%s",
        deleted_id,
        deleted_responses,
        deleted_files,
    )
    return deleted_id, deleted_responses, deleted_files

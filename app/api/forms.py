from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from app.core.deps import get_current_identity
from app.core.errors import InvalidInput
from app.db.session import get_db
from app.schemas.forms import FormCreate, FormCreated, FormDeleted, FormRead, FormUpdate, FormUpdated
from app.services import forms as form_service
from app.services.identity import IdentityClaim
from app.services.s3_storage import get_s3_storage

router = APIRouter()


def _version_from_if_match(raw: str | None) -> int | None:
    value = str(raw or "").strip().strip('"')
    if value.startswith("W/"):
        value = value[2:].strip('"')
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidInput("If-Match must carry the form version.", details={"ifMatch": raw})


@router.get("", response_model=list[FormRead])
def list_user_forms(identity: IdentityClaim = Depends(get_current_identity), db: Session = Depends(get_db)):
    return [form_service.serialize_form(form) for form in form_service.list_forms(db, identity)]


@router.post("", response_model=FormCreated, status_code=201)
def create_form(
    payload: FormCreate,
    identity: IdentityClaim = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    form = form_service.create_form(db, identity, payload)
    return FormCreated(form_id=form.id, data=FormRead(**form_service.serialize_form(form)))


@router.get("/{form_id}", response_model=FormRead)
def get_form(form_id: str, identity: IdentityClaim = Depends(get_current_identity), db: Session = Depends(get_db)):
    return form_service.serialize_form(form_service.get_form(db, identity, form_id))


@router.put("/{form_id}", response_model=FormUpdated)
def update_form(
    form_id: str,
    payload: FormUpdate,
    if_match: str | None = Header(default=None),
    identity: IdentityClaim = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    form, updated_fields = form_service.update_form(
        db,
        identity,
        form_id,
        payload,
        expected_version=_version_from_if_match(if_match),
    )
    return FormUpdated(form_id=form.id, updated_fields=updated_fields, version=form.version)


@router.delete("/{form_id}", response_model=FormDeleted)
def delete_form(form_id: str, identity: IdentityClaim = Depends(get_current_identity), db: Session = Depends(get_db)):
    deleted_id, deleted_responses, deleted_files = form_service.delete_form(db, get_s3_storage(), identity, form_id)
    return FormDeleted(form_id=deleted_id, deleted_responses=deleted_responses, deleted_files=deleted_files)

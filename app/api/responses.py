from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_identity, get_optional_identity
from app.db.session import get_db
from app.schemas.responses import ResponseCreated, ResponseRead, ResponseSubmit
from app.services.identity import IdentityClaim
from app.services.responses import list_responses, submit_response

router = APIRouter()


@router.post("", response_model=ResponseCreated, status_code=201)
def save_form_response(
    form_id: str,
    payload: ResponseSubmit,
    identity: IdentityClaim | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
):
    row = submit_response(db, form_id, payload.answers, identity)
    return ResponseCreated(response_id=row.id)


@router.get("", response_model=list[ResponseRead])
def get_form_responses(
    form_id: str,
    identity: IdentityClaim = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return list_responses(db, identity, form_id)

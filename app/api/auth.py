from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.core.deps import get_current_identity
from app.core.errors import InvalidInput
from app.db.session import get_db
from app.schemas.auth import GoogleSignInPayload, LoginPayload, LoginResponse, RegisterPayload, RegisterResponse, UserRead
from app.services.identity import (
    IdentityClaim,
    authenticate_password,
    claim_for_user,
    create_identity,
    issue_token,
    upsert_google_identity,
    verify_credential,
    verify_google_credential,
)

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    user = create_identity(db, payload.email, payload.password, payload.display_name)
    return RegisterResponse(uid=str(user.id), email=user.email, token=issue_token(user))


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    id_token = str(payload.id_token or "").strip()
    if id_token:
        claim = verify_credential(id_token)
        return LoginResponse(message="User logged in successfully.", user=UserRead(**claim.as_dict()))
    if payload.email or payload.password:
        user = authenticate_password(db, payload.email, payload.password)
        return LoginResponse(
            message="User logged in successfully.",
            user=UserRead(**claim_for_user(user).as_dict()),
            token=issue_token(user),
        )
    raise InvalidInput("ID token or email and password are required for login.")


@router.post("/google", response_model=LoginResponse)
def google_sign_in(payload: GoogleSignInPayload, response: Response, db: Session = Depends(get_db)):
    claims = verify_google_credential(str(payload.id_token or ""))
    user, created = upsert_google_identity(db, claims)
    response.status_code = 201 if created else 200
    message = "Google Sign-In successful. New user created." if created else "Google Sign-In successful. Existing user."
    return LoginResponse(message=message, user=UserRead(**claim_for_user(user).as_dict()), token=issue_token(user))


@router.get("/me", response_model=UserRead)
def me(identity: IdentityClaim = Depends(get_current_identity)):
    return UserRead(**identity.as_dict())

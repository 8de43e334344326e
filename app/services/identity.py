from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

import httpx
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict, IdentityProviderUnavailable, InvalidInput, Unauthenticated
from app.core.security import create_jwt, decode_jwt, hash_password, password_needs_rehash, verify_password
from app.models.common import utcnow
from app.models.user import PROVIDER_GOOGLE, PROVIDER_PASSWORD, User

_LOG = logging.getLogger("app.identity")

_GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@dataclass(frozen=True)
class IdentityClaim:
    uid: str
    email: str | None = None
    name: str | None = None
    picture: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def claim_for_user(user: User) -> IdentityClaim:
    return IdentityClaim(uid=str(user.id), email=user.email, name=user.display_name, picture=user.photo_url)


def issue_token(user: User) -> str:
    claim = claim_for_user(user)
    return create_jwt(
        {"sub": claim.uid, "email": claim.email, "name": claim.name, "picture": claim.picture},
        settings.AUTH_JWT_SECRET,
        timedelta(hours=settings.AUTH_JWT_TTL_HOURS),
    )


def verify_credential(token: str) -> IdentityClaim:
    try:
        payload = decode_jwt(token, settings.AUTH_JWT_SECRET)
    except Exception as exc:
        _LOG.info("token rejected: %s", type(exc).__name__)
        raise Unauthenticated("Invalid or expired token") from exc
    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise Unauthenticated("Invalid or expired token")
    return IdentityClaim(
        uid=subject,
        email=payload.get("email"),
        name=payload.get("name"),
        picture=payload.get("picture"),
    )


def get_user_by_email(db: Session, email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return db.query(User).filter(func.lower(User.email) == normalized).first()


def create_identity(db: Session, email: str | None, password: str | None, display_name: str | None = None) -> User:
    normalized = normalize_email(email)
    if not normalized or not password:
        raise InvalidInput("Email and password are required.")
    if "@" not in normalized:
        raise InvalidInput("The email address is improperly formatted.", details={"field": "email"})
    min_length = int(settings.AUTH_MIN_PASSWORD_LENGTH)
    if len(password) < min_length:
        raise InvalidInput(
            f"Password must be at least {min_length} characters long.",
            details={"field": "password", "minLength": min_length},
        )
    if get_user_by_email(db, normalized) is not None:
        raise Conflict("The email address is already in use by another account.")

    user = User(
        email=normalized,
        password_hash=hash_password(password),
        display_name=str(display_name or "").strip() or None,
        provider=PROVIDER_PASSWORD,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("The email address is already in use by another account.") from exc
    db.refresh(user)
    _LOG.info("identity created uid=%s", user.id)
    return user


def authenticate_password(db: Session, email: str | None, password: str | None) -> User:
    user = get_user_by_email(db, str(email or ""))
    if user is None or not verify_password(str(password or ""), user.password_hash):
        raise Unauthenticated("Login failed. Invalid email or password.")
    if password_needs_rehash(user.password_hash):
        user.password_hash = hash_password(str(password))
    user.last_login_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def verify_google_credential(id_token: str) -> dict[str, Any]:
    token = str(id_token or "").strip()
    if not token:
        raise InvalidInput("ID token from Google Sign-In is required.")
    try:
        with httpx.Client(timeout=float(settings.GOOGLE_TIMEOUT_SECONDS)) as client:
            response = client.get(settings.GOOGLE_TOKENINFO_URL, params={"id_token": token})
    except httpx.HTTPError as exc:
        _LOG.warning("google token verification unavailable: %s", type(exc).__name__)
        raise IdentityProviderUnavailable(details={"reason": type(exc).__name__}) from exc

    if response.status_code != 200:
        raise Unauthenticated("Google Sign-In failed. Invalid token.")
    try:
        claims = response.json()
    except ValueError as exc:
        raise IdentityProviderUnavailable(details={"reason": "MALFORMED_RESPONSE"}) from exc
    if not isinstance(claims, dict):
        raise IdentityProviderUnavailable(details={"reason": "MALFORMED_RESPONSE"})

    expected_audience = str(settings.GOOGLE_CLIENT_ID or "").strip()
    if expected_audience and str(claims.get("aud") or "") != expected_audience:
        raise Unauthenticated("Google Sign-In failed. Token audience mismatch.")
    issuer = str(claims.get("iss") or "")
    if issuer and issuer not in _GOOGLE_ISSUERS:
        raise Unauthenticated("Google Sign-In failed. Unexpected token issuer.")
    if not str(claims.get("sub") or "").strip() or not normalize_email(claims.get("email")):
        raise Unauthenticated("Google Sign-In failed. Token has no subject or email.")
    return claims


def upsert_google_identity(db: Session, claims: dict[str, Any]) -> tuple[User, bool]:
    google_sub = str(claims.get("sub") or "").strip()
    email = normalize_email(claims.get("email"))
    display_name = str(claims.get("name") or "").strip() or None
    photo_url = str(claims.get("picture") or "").strip() or None

    user = db.query(User).filter(User.google_sub == google_sub).first()
    if user is None:
        user = get_user_by_email(db, email)
        if user is not None:
            user.google_sub = google_sub

    created = user is None
    if created:
        user = User(
            email=email,
            password_hash=None,
            display_name=display_name,
            photo_url=photo_url,
            provider=PROVIDER_GOOGLE,
            google_sub=google_sub,
        )
    else:
        user.display_name = display_name or user.display_name
        user.photo_url = photo_url or user.photo_url
    user.last_login_at = utcnow()
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("The Google account is already linked to another user.") from exc
    db.refresh(user)
    if created:
        _LOG.info("identity created via google uid=%s", user.id)
    return user, created

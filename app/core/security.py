from datetime import datetime, timedelta, timezone
from jose import jwt
from passlib.context import CryptContext

JWT_ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(password: str, password_hash: str | None) -> bool:
    # Google-only accounts carry no password hash.
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)

def password_needs_rehash(password_hash: str) -> bool:
    return pwd_context.needs_update(password_hash)

def create_jwt(payload: dict, secret: str, expires_delta: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {key: value for key, value in payload.items() if value is not None}
    claims["iat"] = int(issued_at.timestamp())
    claims["exp"] = int((issued_at + expires_delta).timestamp())
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)

def decode_jwt(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], options={"require_exp": True})

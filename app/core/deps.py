from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.errors import Unauthenticated
from app.services.identity import IdentityClaim, verify_credential

bearer = HTTPBearer(auto_error=False)

def _token_from_credentials(creds: HTTPAuthorizationCredentials | None) -> str:
    if not creds or str(creds.scheme or "").lower() != "bearer":
        raise Unauthenticated(
            "No token provided or malformed header",
            details={"reason": "MISSING_OR_MALFORMED_HEADER"},
        )
    token = str(creds.credentials or "").strip()
    if not token:
        raise Unauthenticated("Token is missing", details={"reason": "EMPTY_TOKEN"})
    return token

def get_current_identity(request: Request, creds: HTTPAuthorizationCredentials = Depends(bearer)) -> IdentityClaim:
    identity = verify_credential(_token_from_credentials(creds))
    request.state.identity = identity
    return identity

def get_optional_identity(request: Request, creds: HTTPAuthorizationCredentials = Depends(bearer)) -> IdentityClaim | None:
    if request.headers.get("authorization") is None:
        return None
    identity = verify_credential(_token_from_credentials(creds))
    request.state.identity = identity
    return identity

def client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return str(client.host if client else "unknown")

from typing import Optional

from pydantic import BaseModel

from app.schemas.forms import CamelModel


class RegisterPayload(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = None


class LoginPayload(CamelModel):
    id_token: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class GoogleSignInPayload(CamelModel):
    id_token: Optional[str] = None


class UserRead(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class RegisterResponse(BaseModel):
    message: str = "User registered successfully."
    uid: str
    email: str
    token: str


class LoginResponse(BaseModel):
    message: str
    user: UserRead
    token: Optional[str] = None

from pydantic import BaseModel, EmailStr
from typing import Optional


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class OrganizationOut(BaseModel):
    id: str
    name: str
    timezone: str


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    name: Optional[str] = None
    role: str
    organization: OrganizationOut


from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AuthRequired
from ..logging import structlog
from ..models.models import User, to_uuid
from ..schemas.auth import LoginRequest, RefreshRequest, TokenResponse, MeResponse, OrganizationOut
from ..services.time_rules import utc_now
from .security import (
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
)


router = APIRouter(prefix="/auth", tags=["auth"])
logger = structlog.get_logger(__name__)


def _issue_tokens(user: User) -> TokenResponse:
    access = create_access_token(str(user.id), role=user.role, organization_id=str(user.organization_id))
    refresh = create_refresh_token(str(user.id))
    return TokenResponse(access_token=access, refresh_token=refresh)


@router.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.strip().lower()).first()
    if not user or not verify_password(req.password, user.password_hash):
        logger.info("login_failed", email=req.email)
        raise AuthRequired("Invalid credentials")
    if not user.is_active:
        raise AuthRequired("User not active")
    user.last_login_at = utc_now()
    db.commit()
    logger.info("login", user_id=str(user.id))
    return _issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    payload = decode_token(req.refresh_token)
    if payload.get("type") != "refresh":
        raise AuthRequired("Invalid refresh token")
    try:
        user_id = to_uuid(payload.get("sub"))
    except ValueError:
        raise AuthRequired("Invalid refresh token")
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise AuthRequired("User not active")
    return _issue_tokens(user)


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    org = user.organization
    return MeResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role,
        organization=OrganizationOut(id=str(org.id), name=org.name, timezone=org.timezone),
    )

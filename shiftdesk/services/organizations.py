import uuid
from typing import Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import get_password_hash
from ..errors import ValidationFailed
from ..models.models import Organization, User, ROLE_OWNER
from .time_rules import is_valid_timezone, utc_now

logger = structlog.get_logger(__name__)


def create_organization(
    db: Session,
    name: str,
    timezone: str,
    owner_email: str,
    owner_password: str,
    owner_name: Optional[str] = None,
) -> Tuple[Organization, User]:
    """
    Create a tenant together with its owner account.
    The timezone defines the organization's calendar day and must be an IANA name.
    """
    if not name or not name.strip():
        raise ValidationFailed("name is required")
    if not is_valid_timezone(timezone):
        raise ValidationFailed(f"Unknown timezone: {timezone}")
    email = owner_email.strip().lower()
    if db.query(User).filter(User.email == email).first() is not None:
        raise ValidationFailed("A user with this email already exists")

    now = utc_now()
    org = Organization(id=uuid.uuid4(), name=name.strip(), timezone=timezone, created_at=now)
    owner = User(
        id=uuid.uuid4(),
        organization_id=org.id,
        email=email,
        name=owner_name,
        password_hash=get_password_hash(owner_password),
        role=ROLE_OWNER,
        is_active=True,
        created_at=now,
    )
    db.add(org)
    db.add(owner)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationFailed("A user with this email already exists")
    db.refresh(org)
    db.refresh(owner)
    logger.info("organization_created", organization_id=str(org.id), owner_id=str(owner.id), timezone=timezone)
    return org, owner

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_supervisor
from ..db import get_db
from ..models.models import User
from ..services.audit import get_audit_logs
from ..services.time_rules import ensure_utc


router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(require_supervisor),
):
    """Audit trail of the caller's organization, newest first."""
    logs = get_audit_logs(db, user.organization_id, entity_type, entity_id, limit, offset)
    return {
        "logs": [
            {
                "id": str(log.id),
                "entity_type": log.entity_type,
                "entity_id": str(log.entity_id),
                "action": log.action,
                "actor_id": str(log.actor_id) if log.actor_id else None,
                "actor_role": log.actor_role,
                "source": log.source,
                "changes_json": log.changes_json,
                "timestamp_utc": ensure_utc(log.timestamp_utc).isoformat() if log.timestamp_utc else None,
                "context": log.context,
                "integrity_hash": log.integrity_hash,
            }
            for log in logs
        ]
    }

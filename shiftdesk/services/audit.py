"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.orm import Session

from ..models.models import AuditLog, to_uuid
from ..config import settings
from .time_rules import utc_now


def compute_integrity_hash(canonical_data: Dict[str, Any], integrity_secret: str) -> str:
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    hash_input = f"{canonical_json}:{integrity_secret}"
    return hashlib.sha256(hash_input.encode()).hexdigest()


def create_audit_log(
    db: Session,
    organization_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_id: Optional[str] = None,
    actor_role: Optional[str] = None,
    source: Optional[str] = None,
    changes_json: Optional[Dict] = None,
    context: Optional[Dict] = None,
    integrity_secret: Optional[str] = None,
    timestamp_utc: Optional[datetime] = None,
) -> AuditLog:
    """
    Add an append-only audit log entry to the current transaction.

    Args:
        db: Database session (the caller commits)
        organization_id: Tenant the entity belongs to
        entity_type: Type of entity (shift|time_clock_entry|time_clock_break|shift_template)
        entity_id: Entity ID
        action: Action performed (CREATE|UPDATE|DELETE|CLOCK_IN|CLOCK_OUT|BREAK_START|BREAK_END|APPROVE|REJECT)
        actor_id: User ID who performed the action
        actor_role: Role of the actor (owner|manager|staff|system)
        source: Source of the action (api|system|script)
        changes_json: Before/after diff
        context: Additional context (worker_id, shift_id, reason...)
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)
        timestamp_utc: Time of the action (defaults to now)

    Returns:
        The pending AuditLog object
    """
    if timestamp_utc is None:
        timestamp_utc = utc_now()
    if integrity_secret is None:
        integrity_secret = settings.jwt_secret

    integrity_hash = None
    if integrity_secret:
        integrity_hash = compute_integrity_hash(
            {
                "organization_id": str(organization_id),
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action,
                "actor_id": str(actor_id) if actor_id else None,
                "actor_role": actor_role,
                "source": source,
                "timestamp_utc": timestamp_utc.isoformat(),
                "changes": changes_json,
                "context": context,
            },
            integrity_secret,
        )

    audit_log = AuditLog(
        organization_id=to_uuid(organization_id),
        entity_type=entity_type,
        entity_id=to_uuid(entity_id),
        action=action,
        actor_id=to_uuid(actor_id),
        actor_role=actor_role,
        source=source or "system",
        changes_json=changes_json,
        timestamp_utc=timestamp_utc,
        context=context,
        integrity_hash=integrity_hash,
    )

    db.add(audit_log)
    return audit_log


def get_audit_logs(
    db: Session,
    organization_id,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0
) -> List[AuditLog]:
    """
    Get audit logs of one organization with optional filtering, newest first.
    """
    query = db.query(AuditLog).filter(AuditLog.organization_id == to_uuid(organization_id))

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)

    if entity_id:
        query = query.filter(AuditLog.entity_id == to_uuid(entity_id))

    query = query.order_by(AuditLog.timestamp_utc.desc())
    query = query.limit(limit).offset(offset)

    return query.all()


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Args:
        before: Before state
        after: After state

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff

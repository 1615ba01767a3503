"""
Shift store: planned work intervals of one organization.
"""
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import structlog

from ..errors import Forbidden, NotFound, ValidationFailed
from ..models.models import Shift, User, ROLE_STAFF, SHIFT_STATUSES
from ..repositories.tenant import TenantRepository
from .audit import compute_diff, create_audit_log
from .time_rules import combine_date_time, ensure_utc, parse_client_datetime

logger = structlog.get_logger(__name__)

ENTITY = "shift"


def _shift_state(shift: Shift) -> dict:
    return {
        "user_id": str(shift.user_id) if shift.user_id else None,
        "position_id": str(shift.position_id) if shift.position_id else None,
        "start_time": ensure_utc(shift.start_time).isoformat(),
        "end_time": ensure_utc(shift.end_time).isoformat(),
        "status": shift.status,
        "notes": shift.notes,
        "hourly_rate": float(shift.hourly_rate) if shift.hourly_rate is not None else None,
    }


def check_user_reference(repo: TenantRepository, user_id) -> None:
    """A referenced worker must exist (404) and belong to the caller's organization (403)."""
    if user_id is None:
        return
    worker = repo.get_user(user_id)
    if worker is None:
        raise NotFound("User not found")
    if worker.organization_id != repo.organization_id:
        raise Forbidden("User belongs to another organization")


def check_position_reference(repo: TenantRepository, position_id) -> None:
    if position_id is None:
        return
    position = repo.get_position(position_id)
    if position is None:
        raise NotFound("Position not found")
    if position.organization_id != repo.organization_id:
        raise Forbidden("Position belongs to another organization")


def _check_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationFailed("end_time must be after start_time")


def _check_status(status: str) -> None:
    if status not in SHIFT_STATUSES:
        raise ValidationFailed(f"Invalid status: {status}")


def create_shift(repo: TenantRepository, actor: User, data: dict, now: datetime) -> Shift:
    start = parse_client_datetime(data["start_time"], repo.timezone)
    end = parse_client_datetime(data["end_time"], repo.timezone)
    _check_interval(start, end)
    status = data.get("status") or "scheduled"
    _check_status(status)
    check_user_reference(repo, data.get("user_id"))
    check_position_reference(repo, data.get("position_id"))

    shift = Shift(
        id=uuid.uuid4(),
        organization_id=repo.organization_id,
        user_id=data.get("user_id"),
        position_id=data.get("position_id"),
        start_time=start,
        end_time=end,
        status=status,
        notes=data.get("notes"),
        hourly_rate=data.get("hourly_rate"),
        created_by=actor.id,
        created_at=now,
    )
    repo.add(shift)
    create_audit_log(
        db=repo.db,
        organization_id=repo.organization_id,
        entity_type=ENTITY,
        entity_id=shift.id,
        action="CREATE",
        actor_id=actor.id,
        actor_role=actor.role,
        source="api",
        changes_json={"after": _shift_state(shift)},
        context={"worker_id": str(shift.user_id) if shift.user_id else None},
        timestamp_utc=now,
    )
    repo.commit()
    repo.refresh(shift)
    logger.info("shift_created", shift_id=str(shift.id), user_id=str(shift.user_id) if shift.user_id else None)
    return shift


def get_shift(repo: TenantRepository, actor: User, shift_id) -> Shift:
    shift = repo.get_shift(shift_id)
    if shift is None:
        raise NotFound("Shift not found")
    # Staff cannot tell another worker's shift from a missing one
    if actor.role == ROLE_STAFF and shift.user_id != actor.id:
        raise NotFound("Shift not found")
    return shift


def list_shifts(
    repo: TenantRepository,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id=None,
    status: Optional[str] = None,
) -> List[Shift]:
    start = combine_date_time(start_date, time.min, repo.timezone) if start_date else None
    end = combine_date_time(end_date + timedelta(days=1), time.min, repo.timezone) if end_date else None
    return repo.list_shifts(start=start, end=end, user_id=user_id, status=status)


def update_shift(repo: TenantRepository, actor: User, shift_id, changes: dict, now: datetime) -> Shift:
    """
    Partial update. ``changes`` holds only the fields the client sent;
    an explicit None clears the worker (open shift), position, notes or rate.
    """
    shift = repo.get_shift(shift_id)
    if shift is None:
        raise NotFound("Shift not found")

    before = _shift_state(shift)

    start = ensure_utc(shift.start_time)
    end = ensure_utc(shift.end_time)
    if changes.get("start_time") is not None:
        start = parse_client_datetime(changes["start_time"], repo.timezone)
    if changes.get("end_time") is not None:
        end = parse_client_datetime(changes["end_time"], repo.timezone)
    _check_interval(start, end)

    if "status" in changes:
        if changes["status"] is None:
            raise ValidationFailed("status cannot be null")
        _check_status(changes["status"])
        shift.status = changes["status"]
    if "user_id" in changes:
        check_user_reference(repo, changes["user_id"])
        shift.user_id = changes["user_id"]
    if "position_id" in changes:
        check_position_reference(repo, changes["position_id"])
        shift.position_id = changes["position_id"]
    if "notes" in changes:
        shift.notes = changes["notes"]
    if "hourly_rate" in changes:
        shift.hourly_rate = changes["hourly_rate"]

    shift.start_time = start
    shift.end_time = end
    shift.updated_at = now

    create_audit_log(
        db=repo.db,
        organization_id=repo.organization_id,
        entity_type=ENTITY,
        entity_id=shift.id,
        action="UPDATE",
        actor_id=actor.id,
        actor_role=actor.role,
        source="api",
        changes_json=compute_diff(before, _shift_state(shift)),
        context={"worker_id": str(shift.user_id) if shift.user_id else None},
        timestamp_utc=now,
    )
    repo.commit()
    repo.refresh(shift)
    logger.info("shift_updated", shift_id=str(shift.id))
    return shift


def delete_shift(repo: TenantRepository, actor: User, shift_id, now: datetime) -> None:
    """Hard delete. Clock entries keep their snapshot and lose the link."""
    shift = repo.get_shift(shift_id)
    if shift is None:
        raise NotFound("Shift not found")

    before = _shift_state(shift)
    deleted_id = shift.id
    repo.detach_entries_from_shift(deleted_id)
    repo.delete(shift)
    create_audit_log(
        db=repo.db,
        organization_id=repo.organization_id,
        entity_type=ENTITY,
        entity_id=deleted_id,
        action="DELETE",
        actor_id=actor.id,
        actor_role=actor.role,
        source="api",
        changes_json={"before": before},
        context={"worker_id": before["user_id"]},
        timestamp_utc=now,
    )
    repo.commit()
    logger.info("shift_deleted", shift_id=str(deleted_id))

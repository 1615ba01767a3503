"""
Clock event recording and supervisor approval.

Clock-in reconciles against the worker's shifts for the organization-local
calendar day and snapshots the matched shift's times onto the entry; every
later deviation (clock-out, supervisor edits) is computed against that
snapshot, so rescheduling a shift never rewrites recorded attendance.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Sequence

import structlog

from ..errors import Conflict, NotFound, ValidationFailed
from ..models.models import TimeClockBreak, TimeClockEntry, User, ROLE_STAFF
from ..repositories.tenant import TenantRepository
from .audit import compute_diff, create_audit_log
from .reconciliation import deviation_against, reconcile_clock_in, warning_message
from .time_rules import (
    combine_date_time, end_of_local_day, ensure_utc, local_day_bounds, parse_client_datetime,
)

logger = structlog.get_logger(__name__)

ENTRY = "time_clock_entry"
BREAK = "time_clock_break"


@dataclass
class ClockResult:
    entry: TimeClockEntry
    warning: Optional[str]


def _audit(repo: TenantRepository, actor: User, entity_type: str, entity_id, action: str, now: datetime, **kwargs):
    create_audit_log(
        db=repo.db,
        organization_id=repo.organization_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor.id,
        actor_role=actor.role,
        source="api",
        timestamp_utc=now,
        **kwargs,
    )


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return ensure_utc(dt).isoformat() if dt else None


def _entry_state(entry: TimeClockEntry) -> dict:
    return {
        "clock_in": _iso(entry.clock_in),
        "clock_out": _iso(entry.clock_out),
        "clock_in_deviation_minutes": entry.clock_in_deviation_minutes,
        "clock_out_deviation_minutes": entry.clock_out_deviation_minutes,
        "has_warning": entry.has_warning,
        "is_approved": entry.is_approved,
        "is_rejected": entry.is_rejected,
    }


def _require_open_entry(repo: TenantRepository, worker: User, message: str) -> TimeClockEntry:
    entry = repo.find_open_entry(worker.id)
    if entry is None:
        raise Conflict(message)
    return entry


# Clock Event Recorder

def clock_in(repo: TenantRepository, worker: User, now: datetime, is_sick: bool = False) -> ClockResult:
    if repo.find_open_entry(worker.id) is not None:
        raise Conflict("You already have an active clock-in. Please clock out first.")

    day_start, day_end = local_day_bounds(now, repo.timezone)
    shifts = repo.shifts_for_day(worker.id, day_start, day_end)
    result = reconcile_clock_in(now, shifts)
    shift = result.shift

    entry = TimeClockEntry(
        id=uuid.uuid4(),
        organization_id=repo.organization_id,
        user_id=worker.id,
        shift_id=shift.id if shift else None,
        clock_in=now,
        # Sick days cover the whole local day
        clock_out=end_of_local_day(now, repo.timezone) if is_sick else None,
        shift_start_time=ensure_utc(shift.start_time) if shift else None,
        shift_end_time=ensure_utc(shift.end_time) if shift else None,
        clock_in_deviation_minutes=result.deviation_minutes,
        has_warning=result.has_warning,
        is_sick=is_sick,
        is_approved=False,
        is_rejected=False,
        created_at=now,
    )
    repo.add(entry)
    _audit(
        repo, worker, ENTRY, entry.id, "CLOCK_IN", now,
        changes_json={"after": _entry_state(entry)},
        context={"shift_id": str(shift.id) if shift else None, "is_sick": is_sick},
    )
    repo.commit("You already have an active clock-in. Please clock out first.")
    repo.refresh(entry)

    logger.info(
        "clock_in",
        entry_id=str(entry.id),
        user_id=str(worker.id),
        shift_id=str(shift.id) if shift else None,
        deviation_minutes=result.deviation_minutes,
        has_warning=result.has_warning,
        is_sick=is_sick,
    )
    warning = warning_message(result.matched, result.deviation_minutes) if result.has_warning else None
    return ClockResult(entry=entry, warning=warning)


def clock_out(repo: TenantRepository, worker: User, now: datetime) -> ClockResult:
    entry = _require_open_entry(repo, worker, "No active clock-in found. Please clock in first.")
    if repo.find_open_break(entry.id) is not None:
        raise Conflict("Please end the active break first.")

    before = _entry_state(entry)
    deviation, out_warning = deviation_against(now, entry.shift_end_time)
    entry.clock_out = now
    entry.clock_out_deviation_minutes = deviation
    entry.has_warning = bool(entry.has_warning) or out_warning
    entry.updated_at = now

    _audit(
        repo, worker, ENTRY, entry.id, "CLOCK_OUT", now,
        changes_json=compute_diff(before, _entry_state(entry)),
        context={"shift_id": str(entry.shift_id) if entry.shift_id else None},
    )
    repo.commit()
    repo.refresh(entry)

    logger.info(
        "clock_out",
        entry_id=str(entry.id),
        user_id=str(worker.id),
        deviation_minutes=deviation,
        has_warning=entry.has_warning,
    )
    warning = None
    if entry.has_warning:
        if entry.shift_end_time is None:
            warning = "No shift scheduled for this time"
        elif deviation:
            warning = f"Deviation of {abs(deviation)} minutes from the scheduled shift"
    return ClockResult(entry=entry, warning=warning)


def break_start(repo: TenantRepository, worker: User, now: datetime) -> TimeClockBreak:
    entry = _require_open_entry(repo, worker, "No active clock-in found. Please clock in first.")
    if repo.find_open_break(entry.id) is not None:
        raise Conflict("You already have an active break.")

    brk = TimeClockBreak(
        id=uuid.uuid4(),
        organization_id=repo.organization_id,
        user_id=worker.id,
        time_clock_entry_id=entry.id,
        break_start=now,
        created_at=now,
    )
    repo.add(brk)
    _audit(repo, worker, BREAK, brk.id, "BREAK_START", now, context={"time_clock_entry_id": str(entry.id)})
    repo.commit("You already have an active break.")
    repo.refresh(brk)
    logger.info("break_start", break_id=str(brk.id), entry_id=str(entry.id), user_id=str(worker.id))
    return brk


def break_end(repo: TenantRepository, worker: User, now: datetime) -> TimeClockBreak:
    entry = _require_open_entry(repo, worker, "No active clock-in found.")
    brk = repo.find_open_break(entry.id)
    if brk is None:
        raise Conflict("No active break found.")

    brk.break_end = now
    brk.updated_at = now
    _audit(repo, worker, BREAK, brk.id, "BREAK_END", now, context={"time_clock_entry_id": str(entry.id)})
    repo.commit()
    repo.refresh(brk)
    logger.info("break_end", break_id=str(brk.id), entry_id=str(entry.id), user_id=str(worker.id))
    return brk


def break_status(repo: TenantRepository, worker: User) -> Optional[TimeClockBreak]:
    entry = repo.find_open_entry(worker.id)
    if entry is None:
        return None
    return repo.find_open_break(entry.id)


def list_entries(
    repo: TenantRepository,
    actor: User,
    user_id=None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_rejected: bool = False,
    limit: int = 100,
) -> List[TimeClockEntry]:
    # Staff only ever see their own entries
    if actor.role == ROLE_STAFF:
        user_id = actor.id
    start = combine_date_time(start_date, time.min, repo.timezone) if start_date else None
    end = combine_date_time(end_date + timedelta(days=1), time.min, repo.timezone) if end_date else None
    return repo.list_entries(
        user_id=user_id, start=start, end=end, include_rejected=include_rejected, limit=limit,
    )


# Approval Workflow

def approve_entries(repo: TenantRepository, actor: User, entry_ids: Sequence, now: datetime) -> List[TimeClockEntry]:
    """
    Approve closed, non-rejected entries of the caller's organization.
    Entries that are already approved come back untouched.
    """
    if not entry_ids:
        raise ValidationFailed("Entry ID(s) required")

    approved = []
    newly_approved = []
    for entry in repo.entries_by_ids(entry_ids):
        if entry.is_rejected or entry.clock_out is None:
            continue
        if not entry.is_approved:
            entry.is_approved = True
            entry.approved_by = actor.id
            entry.approved_at = now
            entry.updated_at = now
            _audit(
                repo, actor, ENTRY, entry.id, "APPROVE", now,
                changes_json={"before": {"is_approved": False}, "after": {"is_approved": True}},
                context={"worker_id": str(entry.user_id)},
            )
            newly_approved.append(entry)
        approved.append(entry)

    if newly_approved:
        repo.commit()
        for entry in newly_approved:
            repo.refresh(entry)

    logger.info(
        "entries_approved",
        requested=len(entry_ids),
        approved=len(newly_approved),
        already_approved=len(approved) - len(newly_approved),
        actor_id=str(actor.id),
    )
    return approved


def reject_entry(
    repo: TenantRepository,
    actor: User,
    entry_id,
    reason: Optional[str],
    now: datetime,
) -> TimeClockEntry:
    """
    Mark an entry rejected. The row is kept for the audit trail; an entry
    that is still open is closed at rejection time so the worker can clock in
    again.
    """
    entry = repo.get_entry(entry_id)
    if entry is None:
        raise NotFound("Entry not found")
    if entry.is_rejected:
        return entry
    if entry.is_approved:
        raise Conflict("Approved entries cannot be rejected")

    before = _entry_state(entry)
    if entry.clock_out is None:
        brk = repo.find_open_break(entry.id)
        if brk is not None:
            brk.break_end = now
            brk.updated_at = now
        entry.clock_out = now
    entry.is_rejected = True
    entry.rejected_by = actor.id
    entry.rejected_at = now
    entry.rejection_reason = reason
    entry.updated_at = now

    _audit(
        repo, actor, ENTRY, entry.id, "REJECT", now,
        changes_json=compute_diff(before, _entry_state(entry)),
        context={"worker_id": str(entry.user_id), "rejection_reason": reason},
    )
    repo.commit()
    repo.refresh(entry)
    logger.info("entry_rejected", entry_id=str(entry.id), actor_id=str(actor.id))
    return entry


def update_entry(
    repo: TenantRepository,
    actor: User,
    entry_id,
    clock_in_value: datetime,
    clock_out_value: Optional[datetime],
    now: datetime,
) -> TimeClockEntry:
    """
    Supervisor correction of clock times. Both deviations and the warning flag
    are recomputed against the entry's shift snapshot.
    """
    entry = repo.get_entry(entry_id)
    if entry is None:
        raise NotFound("Entry not found")
    if entry.is_rejected:
        raise Conflict("Rejected entries cannot be edited")
    if entry.is_approved:
        raise Conflict("Approved entries cannot be edited")

    new_in = parse_client_datetime(clock_in_value, repo.timezone)
    new_out = parse_client_datetime(clock_out_value, repo.timezone) if clock_out_value else None
    effective_out = new_out or ensure_utc(entry.clock_out)
    if effective_out is not None and effective_out <= new_in:
        raise ValidationFailed("clock_out must be after clock_in")
    if entry.clock_out is None and new_out is not None and repo.find_open_break(entry.id) is not None:
        raise Conflict("Please end the active break first.")

    before = _entry_state(entry)
    in_deviation, has_warning = deviation_against(new_in, entry.shift_start_time)
    entry.clock_in = new_in
    entry.clock_in_deviation_minutes = in_deviation

    if effective_out is not None:
        out_deviation, out_warning = deviation_against(effective_out, entry.shift_end_time)
        entry.clock_out = effective_out
        entry.clock_out_deviation_minutes = out_deviation
        has_warning = has_warning or out_warning

    entry.has_warning = has_warning
    entry.updated_at = now

    _audit(
        repo, actor, ENTRY, entry.id, "UPDATE", now,
        changes_json=compute_diff(before, _entry_state(entry)),
        context={"worker_id": str(entry.user_id)},
    )
    repo.commit("Worker already has an active clock-in")
    repo.refresh(entry)
    logger.info("entry_updated", entry_id=str(entry.id), actor_id=str(actor.id), has_warning=has_warning)
    return entry

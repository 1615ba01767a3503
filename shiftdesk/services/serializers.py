"""
Row -> JSON dict converters shared by the routers.
Timestamps are rendered as ISO-8601 UTC.
"""
from datetime import datetime
from typing import Optional

from ..models.models import (
    Position, Shift, ShiftTemplate, TimeClockBreak, TimeClockEntry, User,
)
from .time_rules import ensure_utc


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return ensure_utc(dt).isoformat() if dt else None


def _id(value) -> Optional[str]:
    return str(value) if value else None


def user_summary(u: Optional[User]) -> Optional[dict]:
    if u is None:
        return None
    return {"id": str(u.id), "name": u.name, "email": u.email}


def position_to_dict(p: Optional[Position]) -> Optional[dict]:
    if p is None:
        return None
    return {"id": str(p.id), "name": p.name, "color": p.color}


def entry_to_dict(e: TimeClockEntry, expand: bool = False) -> dict:
    out = {
        "id": str(e.id),
        "organization_id": str(e.organization_id),
        "user_id": str(e.user_id),
        "shift_id": _id(e.shift_id),
        "clock_in": _iso(e.clock_in),
        "clock_out": _iso(e.clock_out),
        "shift_start_time": _iso(e.shift_start_time),
        "shift_end_time": _iso(e.shift_end_time),
        "clock_in_deviation_minutes": e.clock_in_deviation_minutes,
        "clock_out_deviation_minutes": e.clock_out_deviation_minutes,
        "has_warning": bool(e.has_warning),
        "is_sick": bool(e.is_sick),
        "is_approved": bool(e.is_approved),
        "approved_by": _id(e.approved_by),
        "approved_at": _iso(e.approved_at),
        "is_rejected": bool(e.is_rejected),
        "rejected_by": _id(e.rejected_by),
        "rejected_at": _iso(e.rejected_at),
        "rejection_reason": e.rejection_reason,
        "created_at": _iso(e.created_at),
        "updated_at": _iso(e.updated_at),
    }
    if expand:
        shift = e.shift
        out["user"] = user_summary(e.user)
        out["shift"] = {
            "id": str(shift.id),
            "start_time": _iso(shift.start_time),
            "end_time": _iso(shift.end_time),
            "position_id": _id(shift.position_id),
            "status": shift.status,
        } if shift else None
        approver = e.approver
        out["approved_by_user"] = {"id": str(approver.id), "name": approver.name} if approver else None
    return out


def entry_summary(e: TimeClockEntry) -> dict:
    return {
        "id": str(e.id),
        "clock_in": _iso(e.clock_in),
        "clock_out": _iso(e.clock_out),
        "clock_in_deviation_minutes": e.clock_in_deviation_minutes,
        "clock_out_deviation_minutes": e.clock_out_deviation_minutes,
        "has_warning": bool(e.has_warning),
        "is_approved": bool(e.is_approved),
        "is_rejected": bool(e.is_rejected),
    }


def break_to_dict(b: Optional[TimeClockBreak]) -> Optional[dict]:
    if b is None:
        return None
    return {
        "id": str(b.id),
        "organization_id": str(b.organization_id),
        "user_id": str(b.user_id),
        "time_clock_entry_id": str(b.time_clock_entry_id),
        "break_start": _iso(b.break_start),
        "break_end": _iso(b.break_end),
    }


def shift_to_dict(s: Shift, with_entries: bool = False) -> dict:
    out = {
        "id": str(s.id),
        "organization_id": str(s.organization_id),
        "user_id": _id(s.user_id),
        "position_id": _id(s.position_id),
        "start_time": _iso(s.start_time),
        "end_time": _iso(s.end_time),
        "status": s.status,
        "notes": s.notes,
        "hourly_rate": float(s.hourly_rate) if s.hourly_rate is not None else None,
        "created_by": _id(s.created_by),
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
        "user": user_summary(s.user),
        "position": position_to_dict(s.position),
    }
    if with_entries:
        out["time_clock_entries"] = [entry_summary(e) for e in s.time_clock_entries]
    return out


def template_to_dict(t: ShiftTemplate) -> dict:
    return {
        "id": str(t.id),
        "name": t.name,
        "description": t.description,
        "created_by": _id(t.created_by),
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
        "items": [
            {
                "id": str(i.id),
                "day_of_week": i.day_of_week,
                "start_time": i.start_time,
                "end_time": i.end_time,
                "user_id": _id(i.user_id),
                "position_id": _id(i.position_id),
                "notes": i.notes,
                "status": i.status,
                "sort_order": i.sort_order,
            }
            for i in t.items
        ],
    }

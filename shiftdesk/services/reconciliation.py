"""
Shift-to-attendance reconciliation.

Matches a clock timestamp to one of the worker's planned shifts for that day
and computes the signed deviation. Pure functions only: callers load the
shifts and persist the result.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..config import settings
from ..models.models import MATCHABLE_SHIFT_STATUSES
from .time_rules import (
    deviation_minutes, ensure_utc, exceeds_warning_threshold, is_within_tolerance,
)


class PlannedShift(Protocol):
    id: object
    start_time: datetime
    end_time: datetime
    status: str


@dataclass(frozen=True)
class Reconciliation:
    shift: Optional[PlannedShift]
    deviation_minutes: Optional[int]
    has_warning: bool

    @property
    def matched(self) -> bool:
        return self.shift is not None


def match_shift(
    clock_time: datetime,
    shifts: Iterable[PlannedShift],
    tolerance_minutes: Optional[int] = None,
) -> Optional[PlannedShift]:
    """
    Pick the shift a clock event belongs to.

    A shift starting inside [T - tolerance, T + tolerance] always wins; among
    several, the earliest start. Otherwise the shift whose start is closest
    to T, ties going to the earliest start. Shifts not scheduled/confirmed
    are ignored.
    """
    if tolerance_minutes is None:
        tolerance_minutes = settings.tolerance_window_min

    candidates = sorted(
        (s for s in shifts if s.status in MATCHABLE_SHIFT_STATUSES),
        key=lambda s: ensure_utc(s.start_time),
    )
    if not candidates:
        return None

    for shift in candidates:
        if is_within_tolerance(clock_time, shift.start_time, tolerance_minutes):
            return shift

    clock_time = ensure_utc(clock_time)
    # min() keeps the first of equal keys, and candidates are sorted by start
    return min(candidates, key=lambda s: abs((ensure_utc(s.start_time) - clock_time).total_seconds()))


def reconcile_clock_in(
    clock_time: datetime,
    shifts: Iterable[PlannedShift],
    tolerance_minutes: Optional[int] = None,
    warning_minutes: Optional[int] = None,
) -> Reconciliation:
    shift = match_shift(clock_time, shifts, tolerance_minutes)
    if shift is None:
        return Reconciliation(shift=None, deviation_minutes=None, has_warning=True)
    deviation = deviation_minutes(clock_time, shift.start_time)
    return Reconciliation(
        shift=shift,
        deviation_minutes=deviation,
        has_warning=exceeds_warning_threshold(deviation, warning_minutes),
    )


def deviation_against(
    actual_time: datetime,
    planned_time: Optional[datetime],
    warning_minutes: Optional[int] = None,
) -> tuple:
    """
    Deviation of ``actual_time`` from a snapshotted planned time.
    Returns (deviation or None, warning). No planned time is itself a warning.
    """
    if planned_time is None:
        return None, True
    deviation = deviation_minutes(actual_time, planned_time)
    return deviation, exceeds_warning_threshold(deviation, warning_minutes)


def warning_message(matched: bool, deviation: Optional[int], tolerance_minutes: Optional[int] = None) -> Optional[str]:
    if tolerance_minutes is None:
        tolerance_minutes = settings.tolerance_window_min
    if not matched:
        return f"No shift scheduled within ±{tolerance_minutes} minutes"
    if deviation:
        return f"Deviation of {abs(deviation)} minutes from the scheduled shift"
    return None

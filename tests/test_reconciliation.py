from datetime import datetime, timedelta
from types import SimpleNamespace

import pytz

from shiftdesk.services.reconciliation import (
    deviation_against,
    match_shift,
    reconcile_clock_in,
    warning_message,
)

UTC = pytz.UTC


def shift(name, hour, minute=0, hours=8, status="scheduled"):
    start = datetime(2024, 3, 4, hour, minute, tzinfo=UTC)
    return SimpleNamespace(id=name, start_time=start, end_time=start + timedelta(hours=hours), status=status)


def clock(hour, minute=0):
    return datetime(2024, 3, 4, hour, minute, tzinfo=UTC)


def test_late_and_early_deviation():
    morning = shift("morning", 9)
    late = reconcile_clock_in(clock(9, 10), [morning])
    assert late.shift is morning
    assert late.deviation_minutes == 10
    assert late.has_warning is False

    early = reconcile_clock_in(clock(8, 50), [morning])
    assert early.deviation_minutes == -10
    assert early.has_warning is False


def test_no_shifts_means_no_match_and_a_warning():
    result = reconcile_clock_in(clock(10), [])
    assert result.matched is False
    assert result.deviation_minutes is None
    assert result.has_warning is True


def test_window_bounds_are_inclusive():
    result = reconcile_clock_in(clock(9, 30), [shift("a", 9)])
    assert result.deviation_minutes == 30
    assert result.has_warning is False

    result = reconcile_clock_in(clock(8, 30), [shift("a", 9)])
    assert result.deviation_minutes == -30
    assert result.has_warning is False


def test_one_minute_past_the_window_warns():
    result = reconcile_clock_in(clock(9, 31), [shift("a", 9)])
    assert result.shift.id == "a"
    assert result.deviation_minutes == 31
    assert result.has_warning is True


def test_in_window_shift_beats_out_of_window_shift():
    # 13:00 is 40 minutes from 12:20, 11:55 is 25 minutes away
    later = shift("later", 13)
    in_window = shift("in_window", 11, 55)
    assert match_shift(clock(12, 20), [later, in_window]) is in_window


def test_earliest_in_window_shift_wins():
    first = shift("first", 8, 40)
    second = shift("second", 9, 10)
    assert match_shift(clock(9), [second, first]) is first


def test_far_fallback_shift_is_matched_with_a_warning():
    evening = shift("evening", 17)
    result = reconcile_clock_in(clock(9), [evening])
    assert result.shift is evening
    assert result.deviation_minutes == -480
    assert result.has_warning is True


def test_fallback_picks_the_closest_shift_ties_to_earliest():
    early = shift("early", 6)
    late = shift("late", 14)
    assert match_shift(clock(10), [late, early]) is early
    assert match_shift(clock(11), [late, early]) is late


def test_cancelled_and_completed_shifts_are_ignored():
    cancelled = shift("cancelled", 9, status="cancelled")
    completed = shift("completed", 9, status="completed")
    confirmed = shift("confirmed", 14, status="confirmed")
    assert match_shift(clock(9), [cancelled, completed]) is None
    assert match_shift(clock(9), [cancelled, confirmed]) is confirmed


def test_deviation_against_snapshot():
    assert deviation_against(clock(17, 40), clock(17)) == (40, True)
    assert deviation_against(clock(16, 45), clock(17)) == (-15, False)
    assert deviation_against(clock(17), None) == (None, True)


def test_warning_messages():
    assert warning_message(False, None) == "No shift scheduled within ±30 minutes"
    assert warning_message(True, -45) == "Deviation of 45 minutes from the scheduled shift"
    assert warning_message(True, 0) is None

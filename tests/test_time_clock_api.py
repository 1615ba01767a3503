from conftest import at

from shiftdesk.models.models import TimeClockBreak, TimeClockEntry
from shiftdesk.repositories.tenant import TenantRepository


def test_clock_in_matches_shift_and_clock_out_deviation(client, clock, staff, add_shift):
    shift_id = add_shift(staff, at(9), at(17))

    clock.now = at(9, 5)
    resp = client.post("/time-clock/clock-in", headers=staff.headers)
    assert resp.status_code == 200
    body = resp.json()
    entry = body["entry"]
    assert entry["shift_id"] == str(shift_id)
    assert entry["clock_in_deviation_minutes"] == 5
    assert entry["has_warning"] is False
    assert entry["shift_start_time"] == "2024-03-04T09:00:00+00:00"
    assert entry["shift_end_time"] == "2024-03-04T17:00:00+00:00"
    assert body["warning"] is None

    clock.now = at(17, 40)
    resp = client.post("/time-clock/clock-out", headers=staff.headers)
    assert resp.status_code == 200
    body = resp.json()
    entry = body["entry"]
    assert entry["clock_out"] == "2024-03-04T17:40:00+00:00"
    assert entry["clock_out_deviation_minutes"] == 40
    assert entry["has_warning"] is True
    assert body["warning"] == "Deviation of 40 minutes from the scheduled shift"


def test_clock_in_without_shift_warns(client, clock, staff):
    clock.now = at(10)
    resp = client.post("/time-clock/clock-in", headers=staff.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["entry"]["shift_id"] is None
    assert body["entry"]["clock_in_deviation_minutes"] is None
    assert body["entry"]["has_warning"] is True
    assert body["warning"] == "No shift scheduled within ±30 minutes"

    clock.now = at(15)
    resp = client.post("/time-clock/clock-out", headers=staff.headers)
    assert resp.status_code == 200
    assert resp.json()["entry"]["clock_out_deviation_minutes"] is None
    assert resp.json()["warning"] == "No shift scheduled for this time"


def test_double_clock_in_is_rejected_without_new_row(client, clock, staff):
    clock.now = at(9)
    assert client.post("/time-clock/clock-in", headers=staff.headers).status_code == 200

    clock.now = at(9, 30)
    resp = client.post("/time-clock/clock-in", headers=staff.headers)
    assert resp.status_code == 400
    assert resp.json() == {
        "error": {"message": "You already have an active clock-in. Please clock out first."}
    }

    entries = client.get("/time-clock/entries", headers=staff.headers).json()["entries"]
    assert len(entries) == 1


def test_concurrent_clock_in_is_stopped_by_the_open_entry_index(client, clock, staff, session_factory, monkeypatch):
    clock.now = at(9)
    assert client.post("/time-clock/clock-in", headers=staff.headers).status_code == 200

    # Both requests passed the open-entry lookup before either committed
    monkeypatch.setattr(TenantRepository, "find_open_entry", lambda self, user_id: None)
    clock.now = at(9, 1)
    resp = client.post("/time-clock/clock-in", headers=staff.headers)
    assert resp.status_code == 400
    assert resp.json() == {
        "error": {"message": "You already have an active clock-in. Please clock out first."}
    }

    with session_factory() as db:
        assert db.query(TimeClockEntry).filter(TimeClockEntry.user_id == staff.id).count() == 1


def test_concurrent_break_start_is_stopped_by_the_open_break_index(client, clock, staff, session_factory, monkeypatch):
    clock.now = at(9)
    client.post("/time-clock/clock-in", headers=staff.headers)
    clock.now = at(12)
    assert client.post("/time-clock/break/start", headers=staff.headers).status_code == 200

    monkeypatch.setattr(TenantRepository, "find_open_break", lambda self, entry_id: None)
    clock.now = at(12, 1)
    resp = client.post("/time-clock/break/start", headers=staff.headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "You already have an active break."}}

    with session_factory() as db:
        assert db.query(TimeClockBreak).filter(TimeClockBreak.user_id == staff.id).count() == 1



def test_clock_out_without_clock_in(client, staff):
    resp = client.post("/time-clock/clock-out", headers=staff.headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "No active clock-in found. Please clock in first."


def test_shift_on_another_day_is_not_matched(client, clock, staff, add_shift):
    add_shift(staff, at(9, day=5), at(17, day=5))
    clock.now = at(9)
    body = client.post("/time-clock/clock-in", headers=staff.headers).json()
    assert body["entry"]["shift_id"] is None
    assert body["entry"]["has_warning"] is True


def test_cancelled_shift_is_not_matched(client, clock, staff, add_shift):
    add_shift(staff, at(9), at(17), status="cancelled")
    clock.now = at(9)
    body = client.post("/time-clock/clock-in", headers=staff.headers).json()
    assert body["entry"]["shift_id"] is None


def test_sick_day_closes_entry_at_end_of_local_day(client, clock, staff):
    clock.now = at(8)
    resp = client.post("/time-clock/clock-in", json={"is_sick": True}, headers=staff.headers)
    assert resp.status_code == 200
    entry = resp.json()["entry"]
    assert entry["is_sick"] is True
    assert entry["clock_out"] == "2024-03-04T23:59:59.999000+00:00"

    # The sick entry is already closed
    clock.now = at(9)
    assert client.post("/time-clock/clock-in", headers=staff.headers).status_code == 200


def test_break_lifecycle(client, clock, staff):
    resp = client.post("/time-clock/break/start", headers=staff.headers)
    assert resp.status_code == 400

    clock.now = at(9)
    client.post("/time-clock/clock-in", headers=staff.headers)
    assert client.get("/time-clock/break/status", headers=staff.headers).json() == {"break": None}

    clock.now = at(12)
    resp = client.post("/time-clock/break/start", headers=staff.headers)
    assert resp.status_code == 200
    brk = resp.json()["break"]
    assert brk["break_start"] == "2024-03-04T12:00:00+00:00"
    assert brk["break_end"] is None

    assert client.post("/time-clock/break/start", headers=staff.headers).status_code == 400
    status = client.get("/time-clock/break/status", headers=staff.headers).json()
    assert status["break"]["id"] == brk["id"]

    resp = client.post("/time-clock/clock-out", headers=staff.headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Please end the active break first."

    clock.now = at(12, 30)
    resp = client.post("/time-clock/break/end", headers=staff.headers)
    assert resp.status_code == 200
    assert resp.json()["break"]["break_end"] == "2024-03-04T12:30:00+00:00"
    assert client.post("/time-clock/break/end", headers=staff.headers).status_code == 400

    clock.now = at(17)
    assert client.post("/time-clock/clock-out", headers=staff.headers).status_code == 200


def test_break_status_when_not_clocked_in(client, staff):
    resp = client.get("/time-clock/break/status", headers=staff.headers)
    assert resp.status_code == 200
    assert resp.json() == {"break": None}


def test_staff_only_see_their_own_entries(client, clock, staff, make_account, org, owner):
    colleague = make_account(org, role="staff")
    clock.now = at(9)
    client.post("/time-clock/clock-in", headers=staff.headers)
    client.post("/time-clock/clock-in", headers=colleague.headers)

    mine = client.get("/time-clock/entries", params={"user_id": str(colleague.id)}, headers=staff.headers)
    assert [e["user_id"] for e in mine.json()["entries"]] == [str(staff.id)]

    everyone = client.get("/time-clock/entries", headers=owner.headers).json()["entries"]
    assert {e["user_id"] for e in everyone} == {str(staff.id), str(colleague.id)}
    assert everyone[0]["user"]["email"] in (staff.email, colleague.email)


def test_entries_date_filter(client, clock, staff):
    for day in (4, 5, 6):
        clock.now = at(9, day=day)
        client.post("/time-clock/clock-in", headers=staff.headers)
        clock.now = at(17, day=day)
        client.post("/time-clock/clock-out", headers=staff.headers)

    resp = client.get(
        "/time-clock/entries",
        params={"start_date": "2024-03-05", "end_date": "2024-03-05"},
        headers=staff.headers,
    )
    entries = resp.json()["entries"]
    assert len(entries) == 1
    assert entries[0]["clock_in"] == "2024-03-05T09:00:00+00:00"

    all_entries = client.get("/time-clock/entries", headers=staff.headers).json()["entries"]
    # Newest first
    assert [e["clock_in"][:10] for e in all_entries] == ["2024-03-06", "2024-03-05", "2024-03-04"]


def test_clock_in_requires_a_token(client):
    resp = client.post("/time-clock/clock-in")
    assert resp.status_code == 401
    assert resp.json() == {"error": {"message": "Authorization token required"}}

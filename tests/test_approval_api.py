from conftest import at


def _worked_entry(client, clock, account, start=at(9), end=at(17)):
    clock.now = start
    client.post("/time-clock/clock-in", headers=account.headers)
    clock.now = end
    return client.post("/time-clock/clock-out", headers=account.headers).json()["entry"]


def test_approve_is_idempotent(client, clock, staff, owner, add_shift):
    add_shift(staff, at(9), at(17))
    entry = _worked_entry(client, clock, staff)

    clock.now = at(18)
    resp = client.post("/time-clock/approve", json={"entryId": entry["id"]}, headers=owner.headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    approved = body["entries"][0]
    assert approved["is_approved"] is True
    assert approved["approved_by"] == str(owner.id)
    assert approved["approved_at"] == "2024-03-04T18:00:00+00:00"

    clock.now = at(19)
    again = client.post("/time-clock/approve", json={"entryIds": [entry["id"]]}, headers=owner.headers)
    assert again.status_code == 200
    assert again.json()["entries"][0]["approved_at"] == "2024-03-04T18:00:00+00:00"


def test_bulk_approve_skips_open_entries(client, clock, staff, manager, make_account, org):
    closed = _worked_entry(client, clock, staff)
    colleague = make_account(org)
    clock.now = at(10)
    open_entry = client.post("/time-clock/clock-in", headers=colleague.headers).json()["entry"]

    resp = client.post(
        "/time-clock/approve",
        json={"entryIds": [closed["id"], open_entry["id"]]},
        headers=manager.headers,
    )
    assert resp.status_code == 200
    assert [e["id"] for e in resp.json()["entries"]] == [closed["id"]]


def test_approve_requires_ids(client, owner):
    resp = client.post("/time-clock/approve", json={}, headers=owner.headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "Entry ID(s) required"}}


def test_staff_cannot_approve_reject_or_update(client, clock, staff):
    entry = _worked_entry(client, clock, staff)
    for method, url, payload in (
        ("post", "/time-clock/approve", {"entryId": entry["id"]}),
        ("post", "/time-clock/reject", {"entryId": entry["id"]}),
        ("put", "/time-clock/update", {"entryId": entry["id"], "clock_in": "2024-03-04T08:00:00Z"}),
    ):
        resp = getattr(client, method)(url, json=payload, headers=staff.headers)
        assert resp.status_code == 403
        assert resp.json() == {"error": {"message": "Insufficient permissions"}}


def test_approve_ignores_other_tenants_entries(client, clock, staff, other_owner):
    entry = _worked_entry(client, clock, staff)
    resp = client.post("/time-clock/approve", json={"entryId": entry["id"]}, headers=other_owner.headers)
    assert resp.status_code == 200
    assert resp.json() == {"entries": [], "count": 0}


def test_reject_keeps_row_and_frees_the_worker(client, clock, staff, owner):
    clock.now = at(9)
    entry = client.post("/time-clock/clock-in", headers=staff.headers).json()["entry"]
    clock.now = at(11)
    client.post("/time-clock/break/start", headers=staff.headers)

    clock.now = at(11, 15)
    resp = client.post(
        "/time-clock/reject",
        json={"entryId": entry["id"], "reason": "Clocked in from home"},
        headers=owner.headers,
    )
    assert resp.status_code == 200
    rejected = resp.json()["entry"]
    assert rejected["is_rejected"] is True
    assert rejected["rejected_by"] == str(owner.id)
    assert rejected["rejection_reason"] == "Clocked in from home"
    assert rejected["clock_out"] == "2024-03-04T11:15:00+00:00"

    # The open break went with it
    assert client.get("/time-clock/break/status", headers=staff.headers).json() == {"break": None}

    clock.now = at(12)
    assert client.post("/time-clock/clock-in", headers=staff.headers).status_code == 200

    visible = client.get("/time-clock/entries", headers=owner.headers).json()["entries"]
    assert entry["id"] not in [e["id"] for e in visible]
    everything = client.get(
        "/time-clock/entries", params={"include_rejected": "true"}, headers=owner.headers
    ).json()["entries"]
    assert entry["id"] in [e["id"] for e in everything]


def test_approved_entry_cannot_be_rejected_or_edited(client, clock, staff, owner):
    entry = _worked_entry(client, clock, staff)
    client.post("/time-clock/approve", json={"entryId": entry["id"]}, headers=owner.headers)

    clock.now = at(20)
    resp = client.post("/time-clock/reject", json={"entryId": entry["id"]}, headers=owner.headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "Approved entries cannot be rejected"}}

    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T05:00:00+00:00"},
        headers=owner.headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "Approved entries cannot be edited"}}

    stored = client.get("/time-clock/entries", headers=owner.headers).json()["entries"][0]
    assert stored["clock_in"] == "2024-03-04T09:00:00+00:00"
    assert stored["is_approved"] is True
    assert stored["is_rejected"] is False


def test_reject_is_idempotent(client, clock, staff, owner):
    entry = _worked_entry(client, clock, staff)

    clock.now = at(20)
    first = client.post("/time-clock/reject", json={"entryId": entry["id"]}, headers=owner.headers).json()["entry"]
    assert first["is_rejected"] is True

    clock.now = at(21)
    second = client.post("/time-clock/reject", json={"entryId": entry["id"]}, headers=owner.headers).json()["entry"]
    assert second["rejected_at"] == first["rejected_at"]

    # Rejected entries are not approvable
    resp = client.post("/time-clock/approve", json={"entryId": entry["id"]}, headers=owner.headers)
    assert resp.json()["count"] == 0


def test_reject_unknown_or_foreign_entry_is_404(client, clock, staff, other_owner):
    entry = _worked_entry(client, clock, staff)
    resp = client.post("/time-clock/reject", json={"entryId": entry["id"]}, headers=other_owner.headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": {"message": "Entry not found"}}


def test_update_recomputes_deviations(client, clock, staff, owner, add_shift):
    add_shift(staff, at(9), at(17))
    entry = _worked_entry(client, clock, staff, start=at(9, 5), end=at(17))
    assert entry["has_warning"] is False

    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T09:45:00+00:00", "clock_out": "2024-03-04T17:10:00+00:00"},
        headers=owner.headers,
    )
    assert resp.status_code == 200
    updated = resp.json()["entry"]
    assert updated["clock_in_deviation_minutes"] == 45
    assert updated["clock_out_deviation_minutes"] == 10
    assert updated["has_warning"] is True

    # clock_out omitted: stored clock_out and its deviation are kept
    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T09:10:00+00:00"},
        headers=owner.headers,
    )
    updated = resp.json()["entry"]
    assert updated["clock_in_deviation_minutes"] == 10
    assert updated["clock_out"] == "2024-03-04T17:10:00+00:00"
    assert updated["clock_out_deviation_minutes"] == 10
    assert updated["has_warning"] is False


def test_update_rejects_inverted_interval(client, clock, staff, owner):
    entry = _worked_entry(client, clock, staff)
    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T18:00:00+00:00"},
        headers=owner.headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "clock_out must be after clock_in"}}


def test_update_foreign_entry_is_404(client, clock, staff, other_owner):
    entry = _worked_entry(client, clock, staff)
    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T08:00:00+00:00"},
        headers=other_owner.headers,
    )
    assert resp.status_code == 404


def test_closing_an_open_entry_with_a_running_break_is_refused(client, clock, staff, owner):
    clock.now = at(9)
    entry = client.post("/time-clock/clock-in", headers=staff.headers).json()["entry"]
    clock.now = at(12)
    client.post("/time-clock/break/start", headers=staff.headers)

    clock.now = at(17, 30)
    resp = client.put(
        "/time-clock/update",
        json={"entryId": entry["id"], "clock_in": "2024-03-04T09:00:00+00:00", "clock_out": "2024-03-04T17:00:00+00:00"},
        headers=owner.headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": {"message": "Please end the active break first."}}

    # Entry is still open and the break can still be ended by the worker
    assert client.get("/time-clock/break/status", headers=staff.headers).json()["break"] is not None
    assert client.post("/time-clock/break/end", headers=staff.headers).status_code == 200
    assert client.post("/time-clock/clock-out", headers=staff.headers).status_code == 200

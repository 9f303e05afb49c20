from datetime import datetime, timedelta, timezone

from medtrack.core.settings import MAX_STATS_DAYS, REFILL_INTERVAL_DAYS


def _create_med(client, auth, **overrides):
    body = {
        "name": "Metformin",
        "dosage": "500mg",
        "frequency": "twice daily",
        "start_date": "2024-03-01",
    }
    body.update(overrides)
    r = client.post("/medications", json=body, headers=auth)
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200 and r.json()["ok"] is True


def test_requires_user_header(client):
    assert client.get("/medications").status_code == 401
    assert client.get("/adherence/stats").status_code == 401


def test_medication_crud(client, auth):
    med = _create_med(client, auth, instructions="with food")
    assert med["start_date"] == "2024-03-01T00:00:00"

    assert [m["id"] for m in client.get("/medications", headers=auth).json()] == [med["id"]]

    r = client.put(f"/medications/{med['id']}", json={"frequency": "every 6 hours"}, headers=auth)
    assert r.status_code == 200 and r.json()["frequency"] == "every 6 hours"

    assert client.get(f"/medications/{med['id']}", headers={"X-User-Id": "someone_else"}).status_code == 404
    assert client.delete(f"/medications/{med['id']}", headers=auth).status_code == 204
    assert client.get(f"/medications/{med['id']}", headers=auth).status_code == 404


def test_invalid_medication_body(client, auth):
    r = client.post("/medications", json={"name": "", "dosage": "1", "frequency": "daily", "start_date": "2024-03-01"},
                    headers=auth)
    assert r.status_code == 422


def test_schedule_merges_adherence(client, auth):
    med = _create_med(client, auth)
    r = client.post("/adherence", json={
        "medication_id": med["id"],
        "scheduled_time": "2024-03-04T08:05:00",
        "taken_time": "2024-03-04T08:07:00",
    }, headers=auth)
    assert r.status_code == 201, r.text

    r = client.get("/medications/schedule", params={"date": "2024-03-04"}, headers=auth)
    assert r.status_code == 200
    slots = r.json()
    assert [(s["time"], s["label"], s["taken"]) for s in slots] == [
        ("2024-03-04T08:00:00", "8AM", True),
        ("2024-03-04T20:00:00", "8PM", False),
    ]
    assert slots[0]["adherence_record_id"] is not None
    assert slots[1]["adherence_record_id"] is None


def test_schedule_excludes_inactive_medications(client, auth):
    _create_med(client, auth, start_date="2024-03-10")
    r = client.get("/medications/schedule", params={"date": "2024-03-04"}, headers=auth)
    assert r.status_code == 200 and r.json() == []


def test_schedule_rejects_bad_date(client, auth):
    r = client.get("/medications/schedule", params={"date": "not-a-date"}, headers=auth)
    assert r.status_code == 400


def test_medication_doses(client, auth):
    med = _create_med(client, auth, frequency="weekly on monday")
    monday = client.get(f"/medications/{med['id']}/doses", params={"date": "2024-03-04"}, headers=auth).json()
    tuesday = client.get(f"/medications/{med['id']}/doses", params={"date": "2024-03-05"}, headers=auth).json()
    assert monday == [{"time": "2024-03-04T08:00:00", "label": "8AM"}]
    assert tuesday == []


def test_adherence_record_lifecycle(client, auth):
    med = _create_med(client, auth)
    rec = client.post("/adherence", json={"medication_id": med["id"], "scheduled_time": "2024-03-04T20:00:00"},
                      headers=auth).json()
    assert rec["medication_name"] == "Metformin"
    assert rec["taken_time"] is None and rec["skipped"] is False

    r = client.put(f"/adherence/{rec['id']}", json={"skipped": True, "notes": "felt sick"}, headers=auth)
    assert r.status_code == 200
    assert r.json()["skipped"] is True and r.json()["notes"] == "felt sick"

    assert client.get(f"/adherence/{rec['id']}", headers=auth).json()["skipped"] is True
    assert client.get("/adherence/missing", headers=auth).status_code == 404
    assert client.put("/adherence/missing", json={"skipped": True}, headers=auth).status_code == 404


def test_adherence_post_errors(client, auth):
    r = client.post("/adherence", json={"medication_id": "med_nope", "scheduled_time": "2024-03-04T08:00:00"},
                    headers=auth)
    assert r.status_code == 404

    med = _create_med(client, auth)
    body = {"medication_id": med["id"], "scheduled_time": "2024-03-04T08:00:00"}
    assert client.post("/adherence", json=body, headers=auth).status_code == 201
    assert client.post("/adherence", json=body, headers=auth).status_code == 409


def test_adherence_list_filters(client, auth):
    a = _create_med(client, auth, name="A")
    b = _create_med(client, auth, name="B")
    for med, ts in ((a, "2024-03-04T08:00:00"), (a, "2024-03-05T08:00:00"), (b, "2024-03-05T20:00:00")):
        client.post("/adherence", json={"medication_id": med["id"], "scheduled_time": ts}, headers=auth)

    r = client.get("/adherence", params={"startDate": "2024-03-05"}, headers=auth)
    assert [x["scheduled_time"] for x in r.json()] == ["2024-03-05T20:00:00", "2024-03-05T08:00:00"]

    r = client.get("/adherence", params={"medicationId": a["id"], "endDate": "2024-03-04T23:59:59"}, headers=auth)
    assert [x["scheduled_time"] for x in r.json()] == ["2024-03-04T08:00:00"]

    assert client.get("/adherence", params={"startDate": "yesterday"}, headers=auth).status_code == 400


def test_stats_endpoint(client, auth):
    med = _create_med(client, auth)
    for ts, taken in (("2024-03-04T08:00:00", True), ("2024-03-04T20:00:00", True), ("2024-03-05T08:00:00", False)):
        body = {"medication_id": med["id"], "scheduled_time": ts}
        if taken:
            body["taken_time"] = ts
        client.post("/adherence", json=body, headers=auth)

    r = client.get("/adherence/stats", params={"startDate": "2024-03-01", "endDate": "2024-03-31"}, headers=auth)
    assert r.status_code == 200
    stats = r.json()
    assert stats["overall"] == 67
    assert stats["by_medication"] == [{"name": "Metformin", "total": 3, "taken": 2, "adherence": 67}]
    assert [t["time"] for t in stats["by_time"]] == ["Morning", "Bedtime"]
    assert stats["calendar"] == {
        "2024-03-04": {"total": 2, "taken": 2},
        "2024-03-05": {"total": 1, "taken": 0},
    }
    assert stats["streak"] == {"current": 0, "best": 1}


def test_stats_empty_window(client, auth):
    r = client.get("/adherence/stats", params={"days": 7}, headers=auth)
    assert r.status_code == 200
    assert r.json() == {"overall": 0, "by_medication": [], "by_time": [], "calendar": {},
                        "streak": {"current": 0, "best": 0}}


def test_stats_rejects_bad_window(client, auth):
    assert client.get("/adherence/stats", params={"days": 0}, headers=auth).status_code == 400
    r = client.get("/adherence/stats", params={"startDate": "2024-03-10", "endDate": "2024-03-01"}, headers=auth)
    assert r.status_code == 400


def test_update_rejects_null_for_required_fields(client, auth):
    med = _create_med(client, auth)
    for field in ("name", "dosage", "frequency", "start_date"):
        r = client.put(f"/medications/{med['id']}", json={field: None}, headers=auth)
        assert r.status_code == 422, field

    r = client.put(f"/medications/{med['id']}", json={"end_date": None, "instructions": None}, headers=auth)
    assert r.status_code == 200
    assert client.get(f"/medications/{med['id']}", headers=auth).json()["name"] == "Metformin"


def test_stats_rejects_oversized_window(client, auth):
    assert client.get("/adherence/stats", params={"days": 1000000}, headers=auth).status_code == 400
    assert client.get("/adherence/stats", params={"days": MAX_STATS_DAYS + 1}, headers=auth).status_code == 400
    assert client.get("/adherence/stats", params={"days": MAX_STATS_DAYS}, headers=auth).status_code == 200

    r = client.get("/adherence/stats", params={"days": 30, "endDate": "0001-01-05"}, headers=auth)
    assert r.status_code == 400


def test_z_suffixed_times_use_local_wall_clock(client, auth):
    med = _create_med(client, auth, frequency="once daily")
    taken = datetime(2024, 3, 4, 8, 5).astimezone(timezone.utc)
    r = client.post("/adherence", json={
        "medication_id": med["id"],
        "scheduled_time": taken.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "taken_time": taken.strftime("%Y-%m-%dT%H:%M:%SZ"),
    }, headers=auth)
    assert r.status_code == 201
    assert r.json()["scheduled_time"] == "2024-03-04T08:05:00"

    noon = datetime(2024, 3, 4, 12).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    slots = client.get("/medications/schedule", params={"date": noon}, headers=auth).json()
    assert [(s["time"], s["taken"]) for s in slots] == [("2024-03-04T08:00:00", True)]


def test_medication_extra_fields(client, auth):
    med = _create_med(client, auth, color="blue", category="diabetes", total_doses=60, remaining_doses=60)
    assert (med["color"], med["category"], med["total_doses"], med["remaining_doses"]) == ("blue", "diabetes", 60, 60)
    assert med["prescription_id"] is None

    r = client.put(f"/medications/{med['id']}", json={"remaining_doses": 58}, headers=auth)
    assert r.json()["remaining_doses"] == 58 and r.json()["total_doses"] == 60
    assert client.put(f"/medications/{med['id']}", json={"remaining_doses": -1}, headers=auth).status_code == 422


def _create_rx(client, auth, **overrides):
    body = {
        "prescribed_by": "Dr. Rao",
        "prescribed_date": "2024-03-01",
        "refills": 2,
        "pharmacy": "Main St Pharmacy",
        "medications": [
            {"name": "Amoxicillin", "dosage": "250mg", "frequency": "three times daily", "start_date": "2024-03-01"},
            {"name": "Ibuprofen", "dosage": "200mg", "frequency": "every 6 hours", "start_date": "2024-03-01"},
        ],
    }
    body.update(overrides)
    r = client.post("/prescriptions", json=body, headers=auth)
    assert r.status_code == 201, r.text
    return r.json()


def test_prescription_crud(client, auth):
    rx = _create_rx(client, auth)
    assert rx["refills_remaining"] == 2
    assert [m["name"] for m in rx["medications"]] == ["Amoxicillin", "Ibuprofen"]
    assert all(m["prescription_id"] == rx["id"] for m in rx["medications"])

    # nested medications are ordinary medications too
    assert {m["name"] for m in client.get("/medications", headers=auth).json()} == {"Amoxicillin", "Ibuprofen"}
    slots = client.get("/medications/schedule", params={"date": "2024-03-04"}, headers=auth).json()
    assert len(slots) == 6

    r = client.put(f"/prescriptions/{rx['id']}", json={"pharmacy": "Elm St Pharmacy"}, headers=auth)
    assert r.status_code == 200
    assert r.json()["pharmacy"] == "Elm St Pharmacy" and r.json()["prescribed_by"] == "Dr. Rao"
    assert client.put(f"/prescriptions/{rx['id']}", json={"prescribed_by": None}, headers=auth).status_code == 422

    assert client.get(f"/prescriptions/{rx['id']}", headers={"X-User-Id": "someone_else"}).status_code == 404
    assert client.delete(f"/prescriptions/{rx['id']}", headers=auth).status_code == 204
    assert client.get(f"/prescriptions/{rx['id']}", headers=auth).status_code == 404
    assert client.get("/medications", headers=auth).json() == []


def test_prescriptions_list_newest_prescribed_first(client, auth):
    old = _create_rx(client, auth, prescribed_date="2024-01-10", medications=[])
    new = _create_rx(client, auth, prescribed_date="2024-02-20", medications=[])
    assert [p["id"] for p in client.get("/prescriptions", headers=auth).json()] == [new["id"], old["id"]]
    assert client.get("/prescriptions", headers={"X-User-Id": "someone_else"}).json() == []


def test_invalid_prescription_body(client, auth):
    r = client.post("/prescriptions", json={"prescribed_by": "", "prescribed_date": "2024-03-01"}, headers=auth)
    assert r.status_code == 422
    r = client.post("/prescriptions", json={"prescribed_by": "Dr. Rao", "prescribed_date": "2024-03-01",
                                            "refills": -1}, headers=auth)
    assert r.status_code == 422


def test_refill(client, auth):
    rx = _create_rx(client, auth, refills=1, medications=[])
    before = datetime.now()

    r = client.post(f"/prescriptions/{rx['id']}/refill", headers=auth)
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "Refill processed successfully"
    assert body["prescription"]["refills_remaining"] == 0
    next_refill = datetime.fromisoformat(body["prescription"]["next_refill_date"])
    assert before + timedelta(days=REFILL_INTERVAL_DAYS) <= next_refill <= datetime.now() + timedelta(
        days=REFILL_INTERVAL_DAYS)

    r = client.post(f"/prescriptions/{rx['id']}/refill", headers=auth)
    assert r.status_code == 400
    assert r.json()["detail"] == "No refills remaining for this prescription"

    assert client.post("/prescriptions/rx_missing/refill", headers=auth).status_code == 404


def test_medication_with_foreign_prescription_is_rejected(client, auth):
    rx = _create_rx(client, {"X-User-Id": "someone_else"}, medications=[])
    body = {"name": "X", "dosage": "1", "frequency": "daily", "start_date": "2024-03-01", "prescription_id": rx["id"]}
    r = client.post("/medications", json=body, headers=auth)
    assert r.status_code == 404 and r.json()["detail"] == "Prescription not found"

    mine = _create_rx(client, auth, medications=[])
    med = _create_med(client, auth, prescription_id=mine["id"])
    assert client.get(f"/prescriptions/{mine['id']}", headers=auth).json()["medications"][0]["id"] == med["id"]
    r = client.put(f"/medications/{med['id']}", json={"prescription_id": rx["id"]}, headers=auth)
    assert r.status_code == 404

# tests/test_allocations_router.py
import gc
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.main import app
from app.db.session import engine, SessionLocal, get_today
from app.models import Base, Allocation, AvailabilityWindow, Person, Project
from app.services.data_access import _person_locks

client = TestClient(app)


def setup_module(module):
    Base.metadata.create_all(bind=engine)


def _clean_db():
    db: Session = SessionLocal()
    try:
        db.query(Allocation).delete()
        db.query(AvailabilityWindow).delete()
        db.query(Project).delete()
        db.query(Person).delete()
        db.commit()
    finally:
        db.close()


def _seed(people=("Pat",), projects=("Project A", "Project B")):
    """Create people and projects directly in DB; returns their ids."""
    db: Session = SessionLocal()
    try:
        person_rows = [
            Person(name=name, email=f"{name.lower()}@example.com", role_title="Engineer")
            for name in people
        ]
        project_rows = [Project(project_name=name, status="Active") for name in projects]
        db.add_all(person_rows + project_rows)
        db.commit()
        return [p.id for p in person_rows], [p.id for p in project_rows]
    finally:
        db.close()


def _allocate(person_id, project_id, start, end, pct=None, **extra):
    payload = {
        "project_id": project_id,
        "person_id": person_id,
        "start_date": start,
        "end_date": end,
        **extra,
    }
    if pct is not None:
        payload["allocation_percentage"] = pct
    return client.post("/allocations", json=payload)


def test_create_allocation_defaults_to_full_time():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    resp = _allocate(pat, project_a, "2025-01-01", "2025-01-31", role_in_project="Tech lead")
    assert resp.status_code == 201, resp.text

    allocation = resp.json()["allocation"]
    assert allocation["allocation_percentage"] == 100
    assert allocation["start_date"] == "2025-01-01"
    assert allocation["end_date"] == "2025-01-31"
    assert allocation["role_in_project"] == "Tech lead"
    assert allocation["project_name"] == "Project A"
    assert allocation["personnel_name"] == "Pat"

    db = SessionLocal()
    try:
        row = db.query(Allocation).filter_by(id=allocation["id"]).first()
        assert row is not None
        assert row.start_date == date(2025, 1, 1)
    finally:
        db.close()


def test_second_overlapping_allocation_exceeds_capacity():
    _clean_db()
    (pat,), (project_a, project_b) = _seed()

    resp1 = _allocate(pat, project_a, "2025-01-01", "2025-01-31", 60)
    assert resp1.status_code == 201, resp1.text

    resp2 = _allocate(pat, project_b, "2025-01-15", "2025-02-15", 50)
    assert resp2.status_code == 409, resp2.text

    detail = resp2.json()["detail"]
    assert detail["kind"] == "capacity_exceeded"
    assert detail["details"]["total_allocation"] == 110
    assert detail["details"]["current_allocation"] == 60
    assert detail["details"]["requested_allocation"] == 50
    assert detail["details"]["max_allowed"] == 100

    db = SessionLocal()
    try:
        assert db.query(Allocation).filter_by(person_id=pat).count() == 1
    finally:
        db.close()


def test_allocation_above_declared_availability_is_rejected():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    resp = client.post(
        "/availability",
        json={
            "person_id": pat,
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
            "availability_percentage": 40,
            "notes": "Conference season",
        },
    )
    assert resp.status_code == 201, resp.text

    resp2 = _allocate(pat, project_a, "2025-01-01", "2025-01-31", 60)
    assert resp2.status_code == 409, resp2.text

    detail = resp2.json()["detail"]
    assert detail["kind"] == "insufficient_availability"
    assert detail["details"]["average_availability"] == 40
    assert detail["details"]["required"] == 60
    assert len(detail["details"]["conflicts"]) == 1


def test_full_allocation_accepted_without_availability_records():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    resp = _allocate(pat, project_a, "2026-03-01", "2026-08-31", 100)
    assert resp.status_code == 201, resp.text


def test_update_with_out_of_range_percentage_is_invalid_input():
    _clean_db()
    (pat,), (project_a, _) = _seed()
    allocation_id = _allocate(pat, project_a, "2025-01-01", "2025-01-31", 50).json()["allocation"]["id"]

    resp = client.put(f"/allocations/{allocation_id}", json={"allocation_percentage": 120})
    assert resp.status_code == 400, resp.text
    assert resp.json()["detail"]["kind"] == "invalid_input"

    resp2 = client.get(f"/allocations/{allocation_id}")
    assert resp2.json()["allocation"]["allocation_percentage"] == 50


def test_update_applies_merged_changes():
    _clean_db()
    (pat,), (project_a, project_b) = _seed()
    allocation_id = _allocate(pat, project_a, "2025-01-01", "2025-01-31", 50).json()["allocation"]["id"]
    _allocate(pat, project_b, "2025-02-01", "2025-02-28", 60)

    resp = client.put(f"/allocations/{allocation_id}", json={"allocation_percentage": 90})
    assert resp.status_code == 200, resp.text
    assert resp.json()["allocation"]["allocation_percentage"] == 90
    assert resp.json()["allocation"]["end_date"] == "2025-01-31"

    # stretching into February now collides with project B
    resp2 = client.put(f"/allocations/{allocation_id}", json={"end_date": "2025-02-10"})
    assert resp2.status_code == 409, resp2.text
    assert resp2.json()["detail"]["kind"] == "capacity_exceeded"

    resp3 = client.put(f"/allocations/{allocation_id}", json={})
    assert resp3.status_code == 400

    resp4 = client.put("/allocations/999999", json={"allocation_percentage": 10})
    assert resp4.status_code == 404


def test_delete_allocation_leaves_others_untouched():
    _clean_db()
    (pat,), (project_a, project_b) = _seed()
    first = _allocate(pat, project_a, "2025-01-01", "2025-01-31", 40).json()["allocation"]["id"]
    second = _allocate(pat, project_b, "2025-01-01", "2025-01-31", 40).json()["allocation"]["id"]

    resp = client.delete(f"/allocations/{first}")
    assert resp.status_code == 200, resp.text

    resp2 = client.get(f"/allocations/personnel/{pat}")
    assert resp2.status_code == 200
    ids = [a["id"] for a in resp2.json()["allocations"]]
    assert ids == [second]

    assert client.delete(f"/allocations/{first}").status_code == 404
    assert client.get(f"/allocations/{first}").status_code == 404


def test_duplicate_assignment_on_same_project():
    _clean_db()
    (pat,), (project_a, _) = _seed()
    _allocate(pat, project_a, "2025-01-01", "2025-01-31", 20)

    resp = _allocate(pat, project_a, "2025-01-20", "2025-02-20", 20)
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "duplicate_assignment"


def test_invalid_payloads_are_400():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    bad_date = _allocate(pat, project_a, "2025-01-01", "31/01/2025", 50)
    assert bad_date.status_code == 400
    assert bad_date.json()["detail"]["kind"] == "invalid_input"

    reversed_range = _allocate(pat, project_a, "2025-01-31", "2025-01-01", 50)
    assert reversed_range.status_code == 400

    missing = client.post("/allocations", json={"project_id": project_a})
    assert missing.status_code == 400
    assert "Missing required fields" in missing.json()["detail"]["message"]

    wrong_type = client.post(
        "/allocations",
        json={
            "project_id": project_a,
            "person_id": pat,
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
            "allocation_percentage": "most of it",
        },
    )
    assert wrong_type.status_code == 400
    assert wrong_type.json()["detail"]["kind"] == "invalid_input"


def test_unknown_references_are_404():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    assert _allocate(pat, 999999, "2025-01-01", "2025-01-31", 50).status_code == 404
    assert _allocate(999999, project_a, "2025-01-01", "2025-01-31", 50).status_code == 404
    assert client.get("/allocations/project/999999").status_code == 404
    assert client.get("/allocations/personnel/999999").status_code == 404
    assert client.get("/allocations/personnel/999999/utilization").status_code == 404


def test_personnel_id_alias_is_accepted():
    _clean_db()
    (pat,), (project_a, _) = _seed()

    resp = client.post(
        "/allocations",
        json={
            "project_id": project_a,
            "personnel_id": pat,
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
            "allocation_percentage": 30,
        },
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["allocation"]["person_id"] == pat


def test_project_team_roster_and_listing():
    _clean_db()
    (pat, sam), (project_a, project_b) = _seed(people=("Pat", "Sam"))
    _allocate(pat, project_a, "2025-01-01", "2025-01-31", 50, role_in_project="Dev")
    _allocate(sam, project_a, "2025-01-01", "2025-03-31", 25, role_in_project="QA")
    _allocate(sam, project_b, "2025-01-01", "2025-03-31", 25)

    resp = client.get(f"/allocations/project/{project_a}")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["project_name"] == "Project A"
    assert data["team_size"] == 2
    assert {m["personnel_name"] for m in data["allocations"]} == {"Pat", "Sam"}
    assert {m["personnel_email"] for m in data["allocations"]} == {"pat@example.com", "sam@example.com"}

    by_person = client.get("/allocations", params={"person_id": sam}).json()["allocations"]
    assert len(by_person) == 2
    by_both = client.get("/allocations", params={"person_id": sam, "project_id": project_b}).json()
    assert len(by_both["allocations"]) == 1


def test_personnel_utilization_endpoint():
    _clean_db()
    (pat,), (project_a, project_b) = _seed()
    _allocate(pat, project_a, "2025-01-01", "2025-01-31", 60)
    _allocate(pat, project_b, "2025-02-01", "2025-02-28", 40)

    resp = client.get(
        f"/allocations/personnel/{pat}/utilization",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["personnel_name"] == "Pat"
    assert data["utilization"] == {
        "percentage": 60,
        "total_allocated_days": 31,
        "total_days": 31,
        "available_capacity": 40,
    }
    assert len(data["allocations"]) == 1

    again = client.get(
        f"/allocations/personnel/{pat}/utilization",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
    )
    assert again.json() == data


def test_team_utilization_endpoint():
    _clean_db()
    (pat, sam), (project_a, _) = _seed(people=("Pat", "Sam"))
    _allocate(pat, project_a, "2025-01-01", "2025-02-28", 80)

    app.dependency_overrides[get_today] = lambda: date(2025, 1, 10)
    try:
        resp = client.get("/allocations/team/utilization", params={"months": 1})
    finally:
        app.dependency_overrides.pop(get_today, None)

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["date_range"] == {"start": "2025-01-10", "end": "2025-02-10"}
    rows = {row["personnel_name"]: row for row in data["data"]}
    assert [m["utilization"] for m in rows["Pat"]["utilization_by_month"]] == [80, 80]
    assert rows["Pat"]["total_utilization"] == 80
    assert [m["utilization"] for m in rows["Sam"]["utilization_by_month"]] == [0, 0]
    assert rows["Sam"]["total_utilization"] == 0


def test_concurrent_admissions_for_one_person_admit_exactly_one():
    _clean_db()
    names = tuple(f"Project {i}" for i in range(6))
    (pat,), project_ids = _seed(projects=names)
    barrier = threading.Barrier(len(project_ids))

    def post(project_id):
        barrier.wait(timeout=10)
        return _allocate(pat, project_id, "2025-01-01", "2025-01-31", 60).status_code

    with ThreadPoolExecutor(max_workers=len(project_ids)) as pool:
        statuses = list(pool.map(post, project_ids))

    assert sorted(statuses) == [201, 409, 409, 409, 409, 409]

    db = SessionLocal()
    try:
        assert db.query(Allocation).filter_by(person_id=pat).count() == 1
    finally:
        db.close()


def test_unknown_person_ids_leave_no_locks_behind():
    _clean_db()
    (pat,), (project_a, _) = _seed()
    gc.collect()
    before = len(_person_locks)

    for missing in range(900000, 900050):
        resp = _allocate(missing, project_a, "2025-01-01", "2025-01-31", 10)
        assert resp.status_code == 404

    assert _allocate(pat, project_a, "2025-01-01", "2025-01-31", 10).status_code == 201

    gc.collect()
    assert len(_person_locks) == before
    assert pat not in _person_locks


def test_available_personnel_endpoint():
    _clean_db()
    (pat, sam), (project_a, project_b) = _seed(people=("Pat", "Sam"))
    _allocate(pat, project_a, "2025-01-01", "2025-01-31", 60)
    _allocate(sam, project_a, "2025-01-01", "2025-01-31", 50)
    _allocate(sam, project_b, "2025-01-10", "2025-01-20", 50)

    resp = client.get(
        "/allocations/available",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31"},
    )
    assert resp.status_code == 200, resp.text
    rows = resp.json()["personnel"]
    assert [r["personnel_name"] for r in rows] == ["Pat"]
    assert rows[0]["remaining_capacity"] == 40
    assert rows[0]["current_allocation_percentage"] == 60
    assert rows[0]["availability_status"] == "Available"

    everyone = client.get(
        "/allocations/available",
        params={"start_date": "2025-01-01", "end_date": "2025-01-31", "include_unavailable": True},
    ).json()["personnel"]
    sam_row = [r for r in everyone if r["personnel_name"] == "Sam"][0]
    assert sam_row["availability_status"] == "Fully allocated"

    assert client.get("/allocations/available", params={"start_date": "2025-01-01"}).status_code == 400


def test_workload_endpoint():
    _clean_db()
    (pat, sam), (project_a, project_b) = _seed(people=("Pat", "Sam"))
    _allocate(pat, project_a, "2025-01-01", "2025-01-31", 60)
    _allocate(pat, project_b, "2025-01-01", "2025-01-31", 40)

    resp = client.get("/allocations/workload", params={"date": "2025-01-15"})
    assert resp.status_code == 200, resp.text
    rows = resp.json()["personnel"]
    assert [(r["personnel_name"], r["allocation_status"]) for r in rows] == [
        ("Pat", "Fully allocated"),
        ("Sam", "Not allocated"),
    ]
    assert rows[0]["active_project_count"] == 2
    assert {p["project_name"] for p in rows[0]["project_allocations"]} == {"Project A", "Project B"}

    app.dependency_overrides[get_today] = lambda: date(2025, 3, 1)
    try:
        later = client.get("/allocations/workload").json()["personnel"]
    finally:
        app.dependency_overrides.pop(get_today, None)
    assert all(r["total_allocation_percentage"] == 0 for r in later)

    assert client.get("/allocations/workload", params={"date": "soon"}).status_code == 400

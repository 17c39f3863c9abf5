"""
Tests for the FastAPI facade over the engine.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from booking_engine.application.consistency.cache import ViewKind
from booking_engine.main import app
from booking_engine.wiring.dependencies import get_engagement_use_case, get_engine, get_notification_feed

SLOT_D1_MORNING = {"date": "2030-01-02", "start_offset": 540, "end_offset": 600}


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engagement_use_case] = lambda: engine.engagements
    app.dependency_overrides[get_notification_feed] = lambda: engine.notifications
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def _offer(client, actor: str, slot=None, subject_id: str = "task_1"):
    return client.post(
        "/api/v1/engagements",
        json={"subject_id": subject_id, "actor_identity": actor, "selected_slot": slot},
    )


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_subjects_and_availability(client):
    subjects = client.get("/api/v1/subjects").json()
    assert {s["id"] for s in subjects} == {"task_1", "swap_1", "task_2"}

    subject = client.get("/api/v1/subjects/task_1").json()
    assert subject["calendar_bound"] is True

    availability = client.get("/api/v1/subjects/task_1/availability").json()
    assert len(availability) == 4
    assert availability[0]["slot"]["label"] == "2030-01-02 09:00-10:00"


def test_unknown_subject_is_404(client):
    assert client.get("/api/v1/subjects/nope").status_code == 404


def test_create_and_approve_flow(client):
    created = _offer(client, "alice", SLOT_D1_MORNING)
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "pending"
    assert body["selected_slot"]["start_offset"] == 540

    approved = client.post(f"/api/v1/engagements/{body['id']}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    mine = client.get("/api/v1/engagements", params={"actor": "alice"}).json()
    assert [e["id"] for e in mine] == [body["id"]]


def test_sibling_approval_is_409_stale(client):
    first = _offer(client, "alice", SLOT_D1_MORNING).json()
    second = _offer(client, "bob", {"date": "2030-01-03", "start_offset": 540, "end_offset": 600}).json()
    client.post(f"/api/v1/engagements/{first['id']}/approve")

    resp = client.post(f"/api/v1/engagements/{second['id']}/approve")

    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "stale_state"


def test_slot_check_reports_alternatives(client):
    first = _offer(client, "alice", SLOT_D1_MORNING).json()
    client.post(f"/api/v1/engagements/{first['id']}/approve")

    resp = client.post("/api/v1/subjects/task_1/slot-check", json=SLOT_D1_MORNING)

    body = resp.json()
    assert body["valid"] is False
    assert body["reason"] == "booked"
    assert len(body["alternatives"]) == 3


def test_missing_slot_is_400(client):
    resp = _offer(client, "alice")
    assert resp.status_code == 400


def test_inverted_slot_is_400(client):
    resp = _offer(client, "alice", {"date": "2030-01-02", "start_offset": 600, "end_offset": 540})
    assert resp.status_code == 400


def test_unknown_engagement_is_404(client):
    assert client.post("/api/v1/engagements/eng_missing/approve").status_code == 404


def test_notifications_endpoints(client, store):
    store.set_viewer("owner-1")
    _offer(client, "alice", SLOT_D1_MORNING)

    feed = client.get("/api/v1/notifications").json()
    assert len(feed) == 1
    assert feed[0]["kind"] == "offer"
    assert feed[0]["actor_identity"] == "alice"
    assert client.get("/api/v1/notifications/unread-count").json() == {"unread": 1}

    assert client.post(f"/api/v1/notifications/{feed[0]['id']}/read").status_code == 204
    assert client.get("/api/v1/notifications/unread-count").json() == {"unread": 0}

    assert client.delete(f"/api/v1/notifications/{feed[0]['id']}").status_code == 204
    assert client.get("/api/v1/notifications").json() == []
    assert client.delete("/api/v1/notifications").status_code == 204


def test_watch_subject_polls_detail_views(client, engine):
    assert client.put("/api/v1/subjects/task_1/watch").status_code == 204

    intervals = {(job.kind, job.scope): job.interval for job in engine.scheduler.jobs()}
    assert intervals == {
        (ViewKind.subjects, "task_1"): engine.settings.POLL_SUBJECTS_SECONDS,
        (ViewKind.engagements, "task_1"): engine.settings.POLL_ENGAGEMENTS_SECONDS,
    }

    assert client.delete("/api/v1/subjects/task_1/watch").status_code == 204
    assert engine.scheduler.jobs() == []


def test_watch_unknown_subject_is_404(client, engine):
    assert client.put("/api/v1/subjects/nope/watch").status_code == 404
    assert engine.scheduler.jobs() == []

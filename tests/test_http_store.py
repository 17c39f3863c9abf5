"""
Tests for the httpx remote store adapter using httpx.MockTransport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from booking_engine.application.exceptions import (
    ConflictError,
    NetworkError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)
from booking_engine.domain.entities.engagement import EngagementRequest, EngagementStatus
from booking_engine.domain.entities.notification import NotificationKind
from booking_engine.domain.entities.subject import SubjectKind
from booking_engine.infrastructure.remote.http_store import HttpRemoteStore

from factories import D1, MORNING, pair

ENGAGEMENT = {
    "id": "eng_1",
    "subjectId": "task_1",
    "actorIdentity": "alice",
    "status": "pending",
    "selectedSlot": {"date": "2030-01-02", "startOffset": 540, "endOffset": 600},
    "createdAt": "2030-01-01T08:00:00Z",
}


def _store(handler) -> HttpRemoteStore:
    return HttpRemoteStore(
        base_url="https://store.test/api",
        api_token="secret",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_create_sends_idempotency_key_and_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["key"] = request.headers.get("Idempotency-Key")
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json=ENGAGEMENT)

    store = _store(handler)
    request = EngagementRequest(subject_id="task_1", actor_identity="alice", selected_slot=pair(D1, MORNING))

    engagement = await store.create_engagement(request, "key-123")
    await store.close()

    assert seen["method"] == "POST"
    assert seen["path"] == "/api/engagements"
    assert seen["key"] == "key-123"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["selectedSlot"] == {"date": "2030-01-02", "startOffset": 540, "endOffset": 600}
    assert engagement.status == EngagementStatus.pending
    assert engagement.selected_slot == pair(D1, MORNING)


@pytest.mark.asyncio
async def test_transition_endpoints():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={**ENGAGEMENT, "status": "approved"})

    store = _store(handler)
    await store.approve_engagement("eng_1", "k1")
    await store.reject_engagement("eng_1", "k2")
    await store.complete_engagement("eng_1", "k3")
    await store.revert_engagement("eng_1", "k4")

    assert paths == [
        "/api/engagements/eng_1/approve",
        "/api/engagements/eng_1/reject",
        "/api/engagements/eng_1/complete",
        "/api/engagements/eng_1/revert",
    ]


@pytest.mark.parametrize(
    "status,payload,error",
    [
        (404, {"error": {"code": "not_found", "message": "gone"}}, NotFoundError),
        (409, {"error": {"code": "stale_state", "message": "already assigned"}}, StaleStateError),
        (409, {"error": {"code": "slot_taken", "message": "taken"}}, ConflictError),
        (422, {"error": {"code": "invalid", "message": "bad slot"}}, ValidationError),
        (400, {"error": {"message": "bad"}}, ValidationError),
        (503, {"error": {"message": "maintenance"}}, NetworkError),
    ],
)
@pytest.mark.asyncio
async def test_status_codes_map_to_engine_errors(status, payload, error):
    store = _store(lambda request: httpx.Response(status, json=payload))

    with pytest.raises(error) as exc:
        await store.approve_engagement("eng_1", "k1")
    assert str(exc.value) == payload["error"]["message"]


@pytest.mark.asyncio
async def test_non_json_error_body_still_maps():
    store = _store(lambda request: httpx.Response(500, text="upstream exploded"))
    with pytest.raises(NetworkError):
        await store.get_subjects()


@pytest.mark.asyncio
async def test_non_json_success_body_is_network_error():
    store = _store(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    with pytest.raises(NetworkError):
        await store.get_subjects()


@pytest.mark.parametrize(
    "payload",
    [
        [{"kind": "task"}],
        {"id": "task_1"},
        [{"id": "task_1", "kind": "spaceship"}],
    ],
)
@pytest.mark.asyncio
async def test_malformed_subject_list_is_network_error(payload):
    store = _store(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(NetworkError):
        await store.get_subjects()


@pytest.mark.asyncio
async def test_engagement_missing_fields_is_network_error():
    store = _store(lambda request: httpx.Response(200, json={"status": "approved"}))
    with pytest.raises(NetworkError):
        await store.approve_engagement("eng_1", "k1")


@pytest.mark.asyncio
async def test_notifications_not_a_list_is_network_error():
    store = _store(lambda request: httpx.Response(200, json={"items": []}))
    with pytest.raises(NetworkError):
        await store.get_notifications()


@pytest.mark.asyncio
async def test_transport_errors_are_network_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    store = _store(handler)
    with pytest.raises(NetworkError):
        await store.get_engagements("task_1")


@pytest.mark.asyncio
async def test_reads_map_payloads():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/subjects/task_1":
            return httpx.Response(
                200,
                json={
                    "id": "task_1",
                    "kind": "task",
                    "owner": "owner-1",
                    "status": "open",
                    "calendar": {
                        "availableDates": ["2030-01-02"],
                        "timeSlots": [
                            {"startOffset": 540, "endOffset": 600},
                            {"startOffset": 540, "endOffset": 600},
                        ],
                    },
                },
            )
        if request.url.path == "/api/engagements":
            assert request.url.params["subjectId"] == "task_1"
            return httpx.Response(200, json=[ENGAGEMENT])
        return httpx.Response(404, json={"error": {"message": "nope"}})

    store = _store(handler)
    subject = await store.get_subject("task_1")
    engagements = await store.get_engagements("task_1")

    assert subject.kind == SubjectKind.task
    assert subject.is_calendar_bound
    # Duplicate slots from the wire collapse to one
    assert subject.calendar.time_slots == [MORNING]
    assert [e.id for e in engagements] == ["eng_1"]


@pytest.mark.asyncio
async def test_notifications_split_identity_and_display_name():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {"id": "n1", "notificationType": "offer", "taskId": "task_1", "principal": "alice-id"},
                {"id": "p_swap_claim_x", "notificationType": "swap_claim", "principal": "Xavier", "isRead": True},
                {"id": "n3", "notificationType": "no_such_kind"},
            ],
        )

    store = _store(handler)
    events = await store.get_notifications()

    assert [e.id for e in events] == ["n1", "p_swap_claim_x"]
    assert events[0].actor_ref == "alice-id" and events[0].actor_label is None
    assert events[1].kind == NotificationKind.swap_claim
    assert events[1].actor_label == "Xavier" and events[1].actor_ref is None
    assert events[1].is_read


@pytest.mark.asyncio
async def test_notification_mutations_return_none_on_204():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, request.headers.get("Idempotency-Key")))
        return httpx.Response(204)

    store = _store(handler)
    assert await store.mark_notification_read("n1", "k1") is None
    assert await store.clear_notification("n1", "k2") is None
    assert await store.clear_all_notifications("k3") is None

    assert calls == [
        ("POST", "/api/notifications/n1/read", "k1"),
        ("DELETE", "/api/notifications/n1", "k2"),
        ("DELETE", "/api/notifications", "k3"),
    ]


def test_base_url_required(monkeypatch):
    from booking_engine.core.config import settings

    monkeypatch.setattr(settings, "REMOTE_STORE_BASE_URL", None)
    with pytest.raises(ValueError):
        HttpRemoteStore(base_url=None)

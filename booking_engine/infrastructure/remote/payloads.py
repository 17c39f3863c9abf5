from __future__ import annotations

from datetime import date, datetime
from typing import Any

from booking_engine.core.config import settings
from booking_engine.domain.entities.calendar import AvailabilityCalendar, SlotPair, TimeSlot
from booking_engine.domain.entities.engagement import Engagement, EngagementRequest, EngagementStatus
from booking_engine.domain.entities.notification import (
    LABEL_CARRYING_KINDS,
    NotificationEvent,
    NotificationKind,
)
from booking_engine.domain.entities.subject import BookableSubject, SubjectKind, SubjectStatus


def serialize_slot_pair(pair: SlotPair | None) -> dict[str, Any] | None:
    if pair is None:
        return None
    return {
        "date": pair.date.isoformat(),
        "startOffset": pair.slot.start_offset,
        "endOffset": pair.slot.end_offset,
    }


def deserialize_slot_pair(data: dict[str, Any] | None) -> SlotPair | None:
    if not data:
        return None
    return SlotPair(
        date=date.fromisoformat(data["date"]),
        slot=TimeSlot(start_offset=int(data["startOffset"]), end_offset=int(data["endOffset"])),
    )


def deserialize_calendar(data: dict[str, Any] | None) -> AvailabilityCalendar | None:
    if not data:
        return None
    # Duplicate slots from the wire are dropped rather than failing the whole subject.
    slots: list[TimeSlot] = []
    for raw in data.get("timeSlots", []):
        slot = TimeSlot(start_offset=int(raw["startOffset"]), end_offset=int(raw["endOffset"]))
        if slot not in slots:
            slots.append(slot)
    return AvailabilityCalendar(
        available_dates={date.fromisoformat(d) for d in data.get("availableDates", [])},
        time_slots=slots,
        duration_minutes=int(data.get("durationMinutes", 60)),
        interval_minutes=int(data.get("intervalMinutes", 30)),
        timezone=data.get("timezone") or settings.CALENDAR_TIMEZONE,
    )


def deserialize_subject(data: dict[str, Any]) -> BookableSubject:
    return BookableSubject(
        id=str(data["id"]),
        kind=SubjectKind(data.get("kind", SubjectKind.task.value)),
        owner=str(data.get("owner", "")),
        status=SubjectStatus(data.get("status", SubjectStatus.open.value)),
        title=data.get("title") or "",
        calendar=deserialize_calendar(data.get("calendar")),
    )


def serialize_request(request: EngagementRequest) -> dict[str, Any]:
    return {
        "subjectId": request.subject_id,
        "actorIdentity": request.actor_identity,
        "selectedSlot": serialize_slot_pair(request.selected_slot),
        "message": request.message,
    }


def deserialize_engagement(data: dict[str, Any]) -> Engagement:
    return Engagement(
        id=str(data["id"]),
        subject_id=str(data["subjectId"]),
        actor_identity=str(data.get("actorIdentity", "")),
        status=EngagementStatus(data.get("status", EngagementStatus.pending.value)),
        selected_slot=deserialize_slot_pair(data.get("selectedSlot")),
        created_at=_parse_datetime(data.get("createdAt")),
        completed_at=_parse_datetime(data.get("completedAt")),
    )


def deserialize_notification(data: dict[str, Any]) -> NotificationEvent:
    """
    Map the store's notification record. Its shared "principal" field holds a
    raw identity for most kinds but an already-resolved display name for swap
    kinds; that split happens here, once.
    """
    kind = NotificationKind(data["notificationType"])
    principal = data.get("principal") or None
    label_carrying = kind in LABEL_CARRYING_KINDS
    return NotificationEvent(
        id=str(data["id"]),
        kind=kind,
        subject_id=data.get("taskId") or None,
        actor_ref=None if label_carrying else principal,
        actor_label=principal if label_carrying else None,
        is_read=bool(data.get("isRead", False)),
        created_at=_parse_datetime(data.get("createdAt")),
    )


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None

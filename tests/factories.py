from __future__ import annotations

from datetime import date, datetime, timezone

from booking_engine.domain.entities.calendar import SlotPair, TimeSlot
from booking_engine.domain.entities.engagement import Engagement, EngagementStatus

NOW = datetime(2030, 1, 1, 8, 0, tzinfo=timezone.utc)
D1 = date(2030, 1, 2)
D2 = date(2030, 1, 3)
MORNING = TimeSlot.from_hm("09:00", "10:00")
AFTERNOON = TimeSlot.from_hm("14:00", "15:00")


def pair(day: date, slot: TimeSlot) -> SlotPair:
    return SlotPair(date=day, slot=slot)


def engagement(
    engagement_id: str,
    subject_id: str = "task_1",
    actor: str = "alice",
    status: EngagementStatus = EngagementStatus.pending,
    slot: SlotPair | None = None,
) -> Engagement:
    return Engagement(
        id=engagement_id,
        subject_id=subject_id,
        actor_identity=actor,
        status=status,
        selected_slot=slot,
        created_at=NOW,
    )

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from booking_engine.domain.entities.calendar import SlotPair


class EngagementStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset(
    {EngagementStatus.rejected, EngagementStatus.completed, EngagementStatus.cancelled}
)


@dataclass(frozen=True)
class Engagement:
    id: str
    subject_id: str
    actor_identity: str
    status: EngagementStatus = EngagementStatus.pending
    selected_slot: SlotPair | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class EngagementRequest:
    subject_id: str
    actor_identity: str
    selected_slot: SlotPair | None = None
    message: str | None = None

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from booking_engine.domain.entities.calendar import AvailabilityCalendar


class SubjectKind(str, Enum):
    task = "task"
    swap = "swap"
    volunteer_slot = "volunteer_slot"


class SubjectStatus(str, Enum):
    open = "open"
    pending_decision = "pending_decision"
    assigned = "assigned"
    closed = "closed"


@dataclass(frozen=True)
class SubjectPolicy:
    creatable_statuses: frozenset[SubjectStatus] = frozenset({SubjectStatus.open})
    holds_pending_decision: bool = False  # a claim parks the subject in pending_decision
    closes_on_complete: bool = False  # calendar-bound subjects close regardless


DEFAULT_POLICIES: dict[SubjectKind, SubjectPolicy] = {
    SubjectKind.task: SubjectPolicy(),
    SubjectKind.swap: SubjectPolicy(holds_pending_decision=True, closes_on_complete=True),
    SubjectKind.volunteer_slot: SubjectPolicy(),
}


@dataclass(frozen=True)
class BookableSubject:
    id: str
    kind: SubjectKind
    owner: str
    status: SubjectStatus = SubjectStatus.open
    title: str = ""
    calendar: AvailabilityCalendar | None = field(default=None, compare=False)

    @property
    def is_calendar_bound(self) -> bool:
        return self.calendar is not None and not self.calendar.is_empty()

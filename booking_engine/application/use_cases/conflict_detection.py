from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from booking_engine.domain.entities.calendar import AvailabilityCalendar, SlotPair
from booking_engine.domain.entities.engagement import Engagement, EngagementStatus

NOT_OFFERED = "not_offered"
PAST = "past"
BOOKED = "booked"
AVAILABLE = "available"

_ERROR_MESSAGES = {
    NOT_OFFERED: "Selected time slot is not available in the calendar.",
    PAST: "Selected time slot is in the past. Please choose a future time slot.",
    BOOKED: "This time slot has already been booked by another user. Please select a different available time slot.",
}


@dataclass(frozen=True)
class SlotValidation:
    valid: bool
    error: str | None = None
    reason: str | None = None
    alternatives: list[SlotPair] = field(default_factory=list)

    def user_message(self) -> str | None:
        """Error text with the alternatives hint; the empty case reads differently on purpose."""
        if self.valid:
            return None
        count = len(self.alternatives)
        if count:
            plural = "s" if count != 1 else ""
            return f"{self.error} There are {count} other available time slot{plural} to choose from."
        return f"{self.error} No alternative time slots are currently available."


@dataclass(frozen=True)
class SlotAvailability:
    pair: SlotPair
    status: str  # "available" | "booked" | "past"
    booked_by: str | None = None

    @property
    def is_available(self) -> bool:
        return self.status == AVAILABLE


class ConflictDetector:
    """Advisory slot check against the calendar and the engagements we know about.

    The remote store makes the final call; this only fails fast for the user.
    """

    def __init__(self, max_alternatives: int = 5, grace_minutes: int = 1) -> None:
        self._max_alternatives = max_alternatives
        self._grace_minutes = grace_minutes
        self._logger = logging.getLogger(__name__)

    @property
    def max_alternatives(self) -> int:
        return self._max_alternatives

    def validate_slot_availability(
        self,
        subject_id: str,
        requested: SlotPair,
        calendar: AvailabilityCalendar,
        committed_engagements: Iterable[Engagement],
        now: datetime | None = None,
    ) -> SlotValidation:
        booked = _booked_pairs(subject_id, committed_engagements)
        free = [pair for pair in calendar.enumerate_pairs(now, self._grace_minutes) if pair not in booked]

        if requested in free:
            return SlotValidation(valid=True)

        if not calendar.contains(requested):
            reason = NOT_OFFERED
        elif requested in booked:
            reason = BOOKED
        else:
            reason = PAST

        alternatives = free[: self._max_alternatives]
        self._logger.info(
            "Slot rejected by local pre-check",
            extra={"subject_id": subject_id, "reason": reason, "alternatives": len(alternatives)},
        )
        return SlotValidation(
            valid=False,
            error=_ERROR_MESSAGES[reason],
            reason=reason,
            alternatives=alternatives,
        )

    def free_pairs(
        self,
        subject_id: str,
        calendar: AvailabilityCalendar,
        committed_engagements: Iterable[Engagement],
        now: datetime | None = None,
    ) -> list[SlotPair]:
        booked = _booked_pairs(subject_id, committed_engagements)
        return [pair for pair in calendar.enumerate_pairs(now, self._grace_minutes) if pair not in booked]

    def slot_availability(
        self,
        subject_id: str,
        calendar: AvailabilityCalendar,
        committed_engagements: Iterable[Engagement],
        now: datetime | None = None,
    ) -> list[SlotAvailability]:
        """Status of every stored pair, elapsed ones included, for picker-style displays."""
        booked = _booked_pairs(subject_id, committed_engagements)
        upcoming = set(calendar.enumerate_pairs(now, self._grace_minutes))

        result: list[SlotAvailability] = []
        for day in sorted(calendar.available_dates):
            for slot in sorted(set(calendar.time_slots)):
                pair = SlotPair(date=day, slot=slot)
                if pair not in upcoming:
                    result.append(SlotAvailability(pair=pair, status=PAST))
                elif pair in booked:
                    result.append(SlotAvailability(pair=pair, status=BOOKED, booked_by=booked[pair]))
                else:
                    result.append(SlotAvailability(pair=pair, status=AVAILABLE))
        return result


def _booked_pairs(subject_id: str, engagements: Iterable[Engagement]) -> dict[SlotPair, str]:
    return {
        e.selected_slot: e.actor_identity
        for e in engagements
        if e.subject_id == subject_id
        and e.status == EngagementStatus.approved
        and e.selected_slot is not None
    }

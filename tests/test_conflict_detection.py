"""
Tests for the advisory slot conflict check.
"""

from __future__ import annotations

from booking_engine.application.use_cases.conflict_detection import (
    AVAILABLE,
    BOOKED,
    NOT_OFFERED,
    PAST,
    ConflictDetector,
)
from booking_engine.domain.entities.calendar import TimeSlot
from booking_engine.domain.entities.engagement import EngagementStatus

from factories import AFTERNOON, D1, D2, MORNING, NOW, engagement, pair


def test_free_slot_is_valid(calendar):
    result = ConflictDetector().validate_slot_availability("task_1", pair(D1, MORNING), calendar, [], now=NOW)
    assert result.valid
    assert result.user_message() is None


def test_booked_slot_offers_alternatives(calendar):
    """An approved engagement on (D1, 09-10) blocks that pair and the others are offered instead."""
    approved = engagement("e1", status=EngagementStatus.approved, slot=pair(D1, MORNING))

    result = ConflictDetector().validate_slot_availability(
        "task_1", pair(D1, MORNING), calendar, [approved], now=NOW
    )

    assert not result.valid
    assert result.reason == BOOKED
    assert result.alternatives == [pair(D1, AFTERNOON), pair(D2, MORNING), pair(D2, AFTERNOON)]
    assert "already been booked" in result.user_message()
    assert "There are 3 other available time slots to choose from." in result.user_message()


def test_fully_booked_has_empty_alternatives(calendar):
    booked = [
        engagement(f"e{i}", actor=f"user{i}", status=EngagementStatus.approved, slot=p)
        for i, p in enumerate(calendar.enumerate_pairs(NOW))
    ]

    result = ConflictDetector().validate_slot_availability("task_1", pair(D2, AFTERNOON), calendar, booked, now=NOW)

    assert not result.valid
    assert result.alternatives == []
    assert result.user_message().endswith("No alternative time slots are currently available.")


def test_pending_and_foreign_engagements_do_not_block(calendar):
    others = [
        engagement("e1", status=EngagementStatus.pending, slot=pair(D1, MORNING)),
        engagement("e2", subject_id="task_9", status=EngagementStatus.approved, slot=pair(D1, MORNING)),
        engagement("e3", status=EngagementStatus.rejected, slot=pair(D1, MORNING)),
    ]
    result = ConflictDetector().validate_slot_availability("task_1", pair(D1, MORNING), calendar, others, now=NOW)
    assert result.valid


def test_slot_not_in_calendar(calendar):
    result = ConflictDetector().validate_slot_availability(
        "task_1", pair(D1, TimeSlot.from_hm("11:00", "12:00")), calendar, [], now=NOW
    )
    assert result.reason == NOT_OFFERED
    assert len(result.alternatives) == 4


def test_elapsed_slot_is_past(calendar):
    later = NOW.replace(day=2, hour=12)
    result = ConflictDetector().validate_slot_availability("task_1", pair(D1, MORNING), calendar, [], now=later)
    assert result.reason == PAST
    assert pair(D1, MORNING) not in result.alternatives
    assert result.alternatives[0] == pair(D1, AFTERNOON)


def test_alternatives_are_capped(calendar):
    result = ConflictDetector(max_alternatives=1).validate_slot_availability(
        "task_1", pair(D1, TimeSlot.from_hm("11:00", "12:00")), calendar, [], now=NOW
    )
    assert result.alternatives == [pair(D1, MORNING)]
    assert "There are 1 other available time slot to choose from." in result.user_message()


def test_slot_availability_marks_each_pair(calendar):
    approved = engagement("e1", actor="bob", status=EngagementStatus.approved, slot=pair(D2, MORNING))
    later = NOW.replace(day=2, hour=12)

    statuses = {
        item.pair: (item.status, item.booked_by)
        for item in ConflictDetector().slot_availability("task_1", calendar, [approved], now=later)
    }

    assert statuses[pair(D1, MORNING)] == (PAST, None)
    assert statuses[pair(D1, AFTERNOON)] == (AVAILABLE, None)
    assert statuses[pair(D2, MORNING)] == (BOOKED, "bob")
    assert statuses[pair(D2, AFTERNOON)] == (AVAILABLE, None)

"""
Tests for the pure engagement transition rules.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from booking_engine.application.exceptions import ConflictError, StaleStateError, ValidationError
from booking_engine.application.use_cases.engagement_lifecycle import EngagementLifecycle
from booking_engine.domain.entities.engagement import EngagementRequest, EngagementStatus
from booking_engine.domain.entities.subject import BookableSubject, SubjectKind, SubjectStatus

from factories import AFTERNOON, D1, MORNING, NOW, engagement, pair


@pytest.fixture
def task(calendar) -> BookableSubject:
    return BookableSubject(id="task_1", kind=SubjectKind.task, owner="owner-1", calendar=calendar)


@pytest.fixture
def swap() -> BookableSubject:
    return BookableSubject(id="swap_1", kind=SubjectKind.swap, owner="owner-2")


def test_create_pending_engagement(task):
    request = EngagementRequest(subject_id="task_1", actor_identity="alice", selected_slot=pair(D1, MORNING))

    result = EngagementLifecycle().create("e1", request, task, [], now=NOW)

    assert result.engagement.status == EngagementStatus.pending
    assert result.engagement.selected_slot == pair(D1, MORNING)
    assert result.engagement.created_at == NOW
    assert result.subject.status == SubjectStatus.open


def test_swap_claim_holds_subject_pending_decision(swap):
    request = EngagementRequest(subject_id="swap_1", actor_identity="alice")
    result = EngagementLifecycle().create("e1", request, swap, [], now=NOW)
    assert result.subject.status == SubjectStatus.pending_decision


def test_calendar_bound_subject_requires_slot(task):
    request = EngagementRequest(subject_id="task_1", actor_identity="alice")
    with pytest.raises(ValidationError) as exc:
        EngagementLifecycle().create("e1", request, task, [], now=NOW)
    assert "Time slot selection is required" in str(exc.value)


def test_booked_slot_conflicts_with_alternatives(task):
    approved = engagement("e0", actor="bob", status=EngagementStatus.approved, slot=pair(D1, MORNING))
    request = EngagementRequest(subject_id="task_1", actor_identity="alice", selected_slot=pair(D1, MORNING))

    with pytest.raises(ConflictError) as exc:
        EngagementLifecycle().create("e1", request, task, [approved], now=NOW)

    assert pair(D1, AFTERNOON) in exc.value.alternatives


@pytest.mark.parametrize("status", [SubjectStatus.assigned, SubjectStatus.closed, SubjectStatus.pending_decision])
def test_create_on_unavailable_subject(swap, status):
    request = EngagementRequest(subject_id="swap_1", actor_identity="alice")
    with pytest.raises(ConflictError):
        EngagementLifecycle().create("e1", request, replace(swap, status=status), [], now=NOW)


def test_approve_assigns_subject_and_blocks_sibling(task):
    lifecycle = EngagementLifecycle()
    first = engagement("e1", actor="alice", slot=pair(D1, MORNING))
    second = engagement("e2", actor="bob", slot=pair(D1, AFTERNOON))

    approved = lifecycle.approve(first, task, [first, second])
    assert approved.engagement.status == EngagementStatus.approved
    assert approved.subject.status == SubjectStatus.assigned

    # Sibling approval against the updated picture is stale
    with pytest.raises(StaleStateError):
        lifecycle.approve(second, approved.subject, [approved.engagement, second])
    # Even if the subject copy is out of date, the approved sibling is caught
    with pytest.raises(StaleStateError):
        lifecycle.approve(second, task, [approved.engagement, second])


def test_transitions_require_expected_status(task):
    lifecycle = EngagementLifecycle()
    pending = engagement("e1")
    with pytest.raises(StaleStateError):
        lifecycle.complete(pending, task)
    with pytest.raises(StaleStateError):
        lifecycle.revert(pending, task)
    rejected = replace(pending, status=EngagementStatus.rejected)
    with pytest.raises(StaleStateError):
        lifecycle.approve(rejected, task)


def test_reject_releases_swap_when_no_other_claims(swap):
    lifecycle = EngagementLifecycle()
    held = replace(swap, status=SubjectStatus.pending_decision)
    claim = engagement("e1", subject_id="swap_1")
    other = engagement("e2", subject_id="swap_1", actor="bob")

    # Another claim still pending keeps the hold
    assert lifecycle.reject(claim, held, [claim, other]).subject.status == SubjectStatus.pending_decision

    result = lifecycle.reject(claim, held, [claim])
    assert result.engagement.status == EngagementStatus.rejected
    assert result.subject.status == SubjectStatus.open


def test_complete_closes_calendar_bound_subject(task):
    lifecycle = EngagementLifecycle()
    approved = engagement("e1", status=EngagementStatus.approved, slot=pair(D1, MORNING))
    assigned = replace(task, status=SubjectStatus.assigned)

    result = lifecycle.complete(approved, assigned, now=NOW)

    assert result.engagement.status == EngagementStatus.completed
    assert result.engagement.completed_at == NOW
    assert result.subject.status == SubjectStatus.closed


def test_complete_keeps_plain_task_assigned():
    lifecycle = EngagementLifecycle()
    plain = BookableSubject(id="task_2", kind=SubjectKind.task, owner="owner-1", status=SubjectStatus.assigned)
    approved = engagement("e1", subject_id="task_2", status=EngagementStatus.approved)

    assert lifecycle.complete(approved, plain, now=NOW).subject.status == SubjectStatus.assigned


def test_complete_closes_swap(swap):
    lifecycle = EngagementLifecycle()
    approved = engagement("e1", subject_id="swap_1", status=EngagementStatus.approved)
    result = lifecycle.complete(approved, replace(swap, status=SubjectStatus.assigned), now=NOW)
    assert result.subject.status == SubjectStatus.closed


def test_revert_reopens_subject(swap):
    lifecycle = EngagementLifecycle()
    approved = engagement("e1", subject_id="swap_1", status=EngagementStatus.approved)

    result = lifecycle.revert(approved, replace(swap, status=SubjectStatus.assigned))

    assert result.engagement.status == EngagementStatus.cancelled
    assert result.engagement.is_terminal
    assert result.subject.status == SubjectStatus.open

    with pytest.raises(StaleStateError):
        lifecycle.revert(approved, replace(swap, status=SubjectStatus.closed))

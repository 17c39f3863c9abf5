from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Mapping

from booking_engine.application.exceptions import ConflictError, StaleStateError, ValidationError
from booking_engine.application.use_cases.conflict_detection import ConflictDetector
from booking_engine.domain.entities.engagement import Engagement, EngagementRequest, EngagementStatus
from booking_engine.domain.entities.subject import (
    DEFAULT_POLICIES,
    BookableSubject,
    SubjectPolicy,
    SubjectStatus,
)

_UNAVAILABLE_SUBJECT_MESSAGES = {
    SubjectStatus.pending_decision: "This item is pending approval for another user and cannot be claimed.",
    SubjectStatus.assigned: "This item has already been assigned to another user.",
    SubjectStatus.closed: "This item has been completed and is no longer available.",
}


@dataclass(frozen=True)
class Transition:
    engagement: Engagement
    subject: BookableSubject


class EngagementLifecycle:
    """
    Transition rules for engagements and the subject status they drive.

    Pure: every method takes the current engagement/subject and returns the new
    ones, or raises without side effects. The in-memory store applies these as
    the authority; the client applies them to predict the optimistic outcome.
    """

    def __init__(
        self,
        detector: ConflictDetector | None = None,
        policies: Mapping | None = None,
    ) -> None:
        self._detector = detector or ConflictDetector()
        self._policies = dict(DEFAULT_POLICIES)
        self._policies.update(policies or {})

    def policy_for(self, subject: BookableSubject) -> SubjectPolicy:
        return self._policies.get(subject.kind, SubjectPolicy())

    def create(
        self,
        engagement_id: str,
        request: EngagementRequest,
        subject: BookableSubject,
        known_engagements: Iterable[Engagement],
        now: datetime | None = None,
    ) -> Transition:
        policy = self.policy_for(subject)
        if subject.status not in policy.creatable_statuses:
            raise ConflictError(
                _UNAVAILABLE_SUBJECT_MESSAGES.get(subject.status, "This item is not open for new requests.")
            )

        if subject.is_calendar_bound:
            if request.selected_slot is None:
                raise ValidationError(
                    "Time slot selection is required for this post. Please select an available time slot."
                )
            validation = self._detector.validate_slot_availability(
                subject.id,
                request.selected_slot,
                subject.calendar,
                known_engagements,
                now=now,
            )
            if not validation.valid:
                raise ConflictError(validation.user_message(), alternatives=validation.alternatives)

        engagement = Engagement(
            id=engagement_id,
            subject_id=subject.id,
            actor_identity=request.actor_identity,
            status=EngagementStatus.pending,
            selected_slot=request.selected_slot,
            created_at=now or _utcnow(),
        )
        if policy.holds_pending_decision and subject.status == SubjectStatus.open:
            subject = replace(subject, status=SubjectStatus.pending_decision)
        return Transition(engagement=engagement, subject=subject)

    def approve(
        self,
        engagement: Engagement,
        subject: BookableSubject,
        siblings: Iterable[Engagement] = (),
    ) -> Transition:
        _require(engagement, subject, EngagementStatus.pending, "approve")
        if subject.status not in (SubjectStatus.open, SubjectStatus.pending_decision):
            raise StaleStateError(f"Subject {subject.id} is {subject.status.value}; it can no longer be assigned.")
        if any(s.id != engagement.id and s.status == EngagementStatus.approved for s in siblings):
            raise StaleStateError(f"Subject {subject.id} already has an approved engagement.")
        return Transition(
            engagement=replace(engagement, status=EngagementStatus.approved),
            subject=replace(subject, status=SubjectStatus.assigned),
        )

    def reject(
        self,
        engagement: Engagement,
        subject: BookableSubject,
        siblings: Iterable[Engagement] = (),
    ) -> Transition:
        _require(engagement, subject, EngagementStatus.pending, "reject")
        if subject.status == SubjectStatus.pending_decision and self.policy_for(subject).holds_pending_decision:
            still_pending = any(
                s.id != engagement.id and s.status == EngagementStatus.pending for s in siblings
            )
            if not still_pending:
                subject = replace(subject, status=SubjectStatus.open)
        return Transition(engagement=replace(engagement, status=EngagementStatus.rejected), subject=subject)

    def complete(
        self,
        engagement: Engagement,
        subject: BookableSubject,
        now: datetime | None = None,
    ) -> Transition:
        _require(engagement, subject, EngagementStatus.approved, "complete")
        if subject.status != SubjectStatus.assigned:
            raise StaleStateError(f"Subject {subject.id} is {subject.status.value}; it cannot be completed.")
        if subject.is_calendar_bound or self.policy_for(subject).closes_on_complete:
            subject = replace(subject, status=SubjectStatus.closed)
        return Transition(
            engagement=replace(engagement, status=EngagementStatus.completed, completed_at=now or _utcnow()),
            subject=subject,
        )

    def revert(self, engagement: Engagement, subject: BookableSubject) -> Transition:
        _require(engagement, subject, EngagementStatus.approved, "revert")
        if subject.status == SubjectStatus.closed:
            raise StaleStateError(f"Subject {subject.id} is closed; it cannot be reopened.")
        return Transition(
            engagement=replace(engagement, status=EngagementStatus.cancelled),
            subject=replace(subject, status=SubjectStatus.open),
        )


def _require(engagement: Engagement, subject: BookableSubject, expected: EngagementStatus, action: str) -> None:
    if engagement.subject_id != subject.id:
        raise StaleStateError(f"Engagement {engagement.id} does not belong to subject {subject.id}.")
    if engagement.status != expected:
        raise StaleStateError(
            f"Cannot {action} engagement {engagement.id}: it is {engagement.status.value}, expected {expected.value}."
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

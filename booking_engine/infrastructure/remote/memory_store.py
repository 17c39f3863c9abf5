from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from booking_engine.application.codec import notification_codec
from booking_engine.application.exceptions import EngineError, NotFoundError
from booking_engine.application.ports.remote_store import RemoteStorePort
from booking_engine.application.use_cases.engagement_lifecycle import EngagementLifecycle, Transition
from booking_engine.domain.entities.engagement import Engagement, EngagementRequest
from booking_engine.domain.entities.notification import NotificationEvent, NotificationKind
from booking_engine.domain.entities.subject import BookableSubject, SubjectKind


class MemoryRemoteStore(RemoteStorePort):
    """
    Authoritative store kept in process memory, for dev and tests.
    Applies the same lifecycle rules the real backend enforces; whichever
    mutation reaches it first wins and later ones see StaleStateError.
    """

    def __init__(
        self,
        lifecycle: EngagementLifecycle | None = None,
        viewer: str | None = None,
        latency_seconds: float = 0.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lifecycle = lifecycle or EngagementLifecycle()
        self._viewer = viewer
        self._latency = latency_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._subjects: dict[str, BookableSubject] = {}
        self._engagements: dict[str, Engagement] = {}
        self._notifications: dict[str, tuple[str, NotificationEvent]] = {}
        self._idempotent_results: dict[str, Any] = {}
        self._failures: dict[str, list[EngineError]] = {}
        self._sequence = itertools.count(1)
        self._logger = logging.getLogger(__name__)
        self.calls: list[str] = []

    # Seeding and test hooks

    def add_subject(self, subject: BookableSubject) -> None:
        self._subjects[subject.id] = subject

    def add_notification(self, recipient: str, event: NotificationEvent) -> None:
        self._notifications[event.id] = (recipient, event)

    def fail_next(self, operation: str, error: EngineError) -> None:
        """Make the next call to `operation` raise `error` before touching any state."""
        self._failures.setdefault(operation, []).append(error)

    def set_viewer(self, viewer: str | None) -> None:
        self._viewer = viewer

    # RemoteStorePort

    async def create_engagement(self, request: EngagementRequest, idempotency_key: str) -> Engagement:
        await self._enter("create_engagement")
        if idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]

        subject = self._get_subject(request.subject_id)
        transition = self._lifecycle.create(
            engagement_id=f"eng_{uuid.uuid4().hex[:12]}",
            request=request,
            subject=subject,
            known_engagements=self._for_subject(subject.id),
            now=self._clock(),
        )
        self._commit(transition, idempotency_key)

        kind = NotificationKind.swap_claim if subject.kind == SubjectKind.swap else NotificationKind.offer
        self._notify(subject.owner, kind, subject, request.actor_identity, "new")
        self._logger.info(
            "Engagement created",
            extra={"engagement_id": transition.engagement.id, "subject_id": subject.id},
        )
        return transition.engagement

    async def approve_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._transition(
            "approve_engagement",
            engagement_id,
            idempotency_key,
            lambda e, s: self._lifecycle.approve(e, s, self._for_subject(s.id)),
            outcome="approved",
            swap_status="assigned",
        )

    async def reject_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._transition(
            "reject_engagement",
            engagement_id,
            idempotency_key,
            lambda e, s: self._lifecycle.reject(e, s, self._for_subject(s.id)),
            outcome="rejected",
            swap_status="rejected",
        )

    async def complete_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._transition(
            "complete_engagement",
            engagement_id,
            idempotency_key,
            lambda e, s: self._lifecycle.complete(e, s, now=self._clock()),
            outcome="completed",
            swap_status="completed",
        )

    async def revert_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        return await self._transition(
            "revert_engagement",
            engagement_id,
            idempotency_key,
            lambda e, s: self._lifecycle.revert(e, s),
            outcome="reopened",
            swap_status="open",
        )

    async def get_engagements(self, subject_id: str | None = None) -> list[Engagement]:
        await self._enter("get_engagements")
        if subject_id is None:
            return list(self._engagements.values())
        return self._for_subject(subject_id)

    async def get_subject(self, subject_id: str) -> BookableSubject:
        await self._enter("get_subject")
        return self._get_subject(subject_id)

    async def get_subjects(self) -> list[BookableSubject]:
        await self._enter("get_subjects")
        return list(self._subjects.values())

    async def get_notifications(self) -> list[NotificationEvent]:
        await self._enter("get_notifications")
        return [
            event
            for recipient, event in self._notifications.values()
            if self._viewer is None or recipient == self._viewer
        ]

    async def mark_notification_read(self, notification_id: str, idempotency_key: str) -> None:
        await self._enter("mark_notification_read")
        if notification_id not in self._notifications:
            raise NotFoundError(f"Notification {notification_id} not found.")
        recipient, event = self._notifications[notification_id]
        self._notifications[notification_id] = (recipient, replace(event, is_read=True))

    async def clear_notification(self, notification_id: str, idempotency_key: str) -> None:
        await self._enter("clear_notification")
        if idempotency_key in self._idempotent_results:
            return None
        if self._notifications.pop(notification_id, None) is None:
            raise NotFoundError(f"Notification {notification_id} not found.")
        self._idempotent_results[idempotency_key] = None

    async def clear_all_notifications(self, idempotency_key: str) -> None:
        await self._enter("clear_all_notifications")
        if idempotency_key in self._idempotent_results:
            return None
        self._idempotent_results[idempotency_key] = None
        for notification_id, (recipient, _) in list(self._notifications.items()):
            if self._viewer is None or recipient == self._viewer:
                del self._notifications[notification_id]

    # Internals

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        # Yield so concurrent callers interleave the way they would over the network.
        await asyncio.sleep(self._latency)
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    async def _transition(
        self,
        operation: str,
        engagement_id: str,
        idempotency_key: str,
        rule: Callable[[Engagement, BookableSubject], Transition],
        outcome: str,
        swap_status: str,
    ) -> Engagement:
        await self._enter(operation)
        if idempotency_key in self._idempotent_results:
            return self._idempotent_results[idempotency_key]

        engagement = self._engagements.get(engagement_id)
        if engagement is None:
            raise NotFoundError(f"Engagement {engagement_id} not found.")
        subject = self._get_subject(engagement.subject_id)

        transition = rule(engagement, subject)
        self._commit(transition, idempotency_key)

        if subject.kind == SubjectKind.swap:
            self._notify(engagement.actor_identity, NotificationKind.swap_status_change, subject, subject.owner, swap_status)
        elif outcome == "completed":
            self._notify(engagement.actor_identity, NotificationKind.task_update, subject, subject.owner, outcome)
        else:
            self._notify(engagement.actor_identity, NotificationKind.offer, subject, subject.owner, outcome)

        self._logger.info(
            "Engagement transition committed",
            extra={"action": operation, "engagement_id": engagement_id, "subject_id": subject.id},
        )
        return transition.engagement

    def _commit(self, transition: Transition, idempotency_key: str) -> None:
        self._engagements[transition.engagement.id] = transition.engagement
        self._subjects[transition.subject.id] = transition.subject
        self._idempotent_results[idempotency_key] = transition.engagement

    def _notify(
        self,
        recipient: str,
        kind: NotificationKind,
        subject: BookableSubject,
        actor: str,
        label: str | None,
    ) -> None:
        draft = NotificationEvent(
            id="",
            kind=kind,
            subject_id=subject.id,
            actor_ref=actor,
            action_label=label,
            created_at=self._clock(),
        )
        event = replace(draft, id=notification_codec.encode(draft, nonce=str(next(self._sequence))))
        self._notifications[event.id] = (recipient, event)

    def _get_subject(self, subject_id: str) -> BookableSubject:
        subject = self._subjects.get(subject_id)
        if subject is None:
            raise NotFoundError(f"Subject {subject_id} not found.")
        return subject

    def _for_subject(self, subject_id: str) -> list[Engagement]:
        return [e for e in self._engagements.values() if e.subject_id == subject_id]

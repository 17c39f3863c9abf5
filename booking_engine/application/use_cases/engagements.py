from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable

from booking_engine.application.consistency.cache import ViewCache, ViewKey, ViewKind
from booking_engine.application.consistency.coordinator import ConsistencyCoordinator, Mutation
from booking_engine.application.consistency.invalidation import ActionKind
from booking_engine.application.exceptions import ConflictError, EngineError, NotFoundError
from booking_engine.application.ports.completion import CompletionPort
from booking_engine.application.ports.remote_store import RemoteStorePort
from booking_engine.application.use_cases.conflict_detection import (
    ConflictDetector,
    SlotAvailability,
    SlotValidation,
)
from booking_engine.application.use_cases.engagement_lifecycle import EngagementLifecycle, Transition
from booking_engine.domain.entities.calendar import SlotPair
from booking_engine.domain.entities.engagement import Engagement, EngagementRequest
from booking_engine.domain.entities.subject import BookableSubject


class EngagementUseCase:
    """
    Client side of the engagement workflow.

    Reads go through the view cache. Mutations are predicted locally with the
    same lifecycle rules the store applies, shown optimistically, and then
    confirmed or rolled back by the coordinator.
    """

    def __init__(
        self,
        store: RemoteStorePort,
        coordinator: ConsistencyCoordinator,
        lifecycle: EngagementLifecycle | None = None,
        detector: ConflictDetector | None = None,
        completion: CompletionPort | None = None,
    ) -> None:
        self._store = store
        self._coordinator = coordinator
        self._cache: ViewCache = coordinator.cache
        self._detector = detector or ConflictDetector()
        self._lifecycle = lifecycle or EngagementLifecycle(detector=self._detector)
        self._completion = completion
        self._selections: dict[tuple[str, str], SlotPair] = {}
        self._logger = logging.getLogger(__name__)

    # Reads

    async def get_subject(self, subject_id: str, force: bool = False) -> BookableSubject:
        return await self._cache.load(
            ViewKind.subjects,
            lambda: self._store.get_subject(subject_id),
            scope=subject_id,
            force=force,
        )

    async def list_subjects(self, force: bool = False) -> list[BookableSubject]:
        return await self._cache.load(ViewKind.subjects, self._store.get_subjects, force=force)

    async def list_engagements(self, subject_id: str, force: bool = False) -> list[Engagement]:
        return await self._cache.load(
            ViewKind.engagements,
            lambda: self._store.get_engagements(subject_id),
            scope=subject_id,
            force=force,
        )

    async def list_my_engagements(self, actor_identity: str, force: bool = False) -> list[Engagement]:
        async def fetch() -> list[Engagement]:
            engagements = await self._store.get_engagements()
            return [e for e in engagements if e.actor_identity == actor_identity]

        return await self._cache.load(ViewKind.my_engagements, fetch, scope=actor_identity, force=force)

    async def availability(
        self,
        subject_id: str,
        now: datetime | None = None,
        force: bool = False,
    ) -> list[SlotAvailability]:
        async def compute() -> list[SlotAvailability]:
            subject = await self.get_subject(subject_id, force=True)
            if not subject.is_calendar_bound:
                return []
            engagements = await self.list_engagements(subject_id, force=True)
            return self._detector.slot_availability(subject_id, subject.calendar, engagements, now=now)

        return await self._cache.load(ViewKind.availability, compute, scope=subject_id, force=force)

    async def check_slot(self, subject_id: str, pair: SlotPair, now: datetime | None = None) -> SlotValidation:
        """Pre-check a slot against the freshest subject and engagements the store returns."""
        subject = await self.get_subject(subject_id, force=True)
        if not subject.is_calendar_bound:
            return SlotValidation(valid=True)
        engagements = await self.list_engagements(subject_id, force=True)
        return self._detector.validate_slot_availability(subject_id, pair, subject.calendar, engagements, now=now)

    # Slot selection

    async def select_slot(
        self,
        actor_identity: str,
        subject_id: str,
        pair: SlotPair,
        now: datetime | None = None,
    ) -> SlotValidation:
        validation = await self.check_slot(subject_id, pair, now=now)
        if validation.valid:
            self._selections[(actor_identity, subject_id)] = pair
        else:
            self.discard_selection(actor_identity, subject_id)
        return validation

    def selected_slot(self, actor_identity: str, subject_id: str) -> SlotPair | None:
        return self._selections.get((actor_identity, subject_id))

    def discard_selection(self, actor_identity: str, subject_id: str) -> None:
        self._selections.pop((actor_identity, subject_id), None)

    # Mutations

    async def create(self, request: EngagementRequest, now: datetime | None = None) -> Engagement:
        if request.selected_slot is None:
            request = replace(request, selected_slot=self.selected_slot(request.actor_identity, request.subject_id))

        subject = await self.get_subject(request.subject_id, force=True)
        engagements = await self.list_engagements(subject.id, force=True)
        try:
            predicted = self._lifecycle.create(
                engagement_id=f"local_{uuid.uuid4().hex[:12]}",
                request=request,
                subject=subject,
                known_engagements=engagements,
                now=now,
            )
        except ConflictError:
            self.discard_selection(request.actor_identity, subject.id)
            raise

        mutation = Mutation(
            action=ActionKind.create_engagement,
            submit=lambda key: self._store.create_engagement(request, key),
            touches=self._touched(subject.id),
            optimistic=self._optimistic(predicted, engagements),
            log_extra={"subject_id": subject.id},
        )
        try:
            engagement = await self._coordinator.run(mutation)
        except ConflictError as e:
            # The store disagreed with the pre-check; the user has to pick again.
            self.discard_selection(request.actor_identity, subject.id)
            raise await self._with_alternatives(e, subject, now)

        self.discard_selection(request.actor_identity, subject.id)
        return engagement

    async def approve(self, engagement_id: str) -> Engagement:
        return await self._transition(
            ActionKind.approve_engagement,
            engagement_id,
            lambda e, s, siblings: self._lifecycle.approve(e, s, siblings),
            self._store.approve_engagement,
        )

    async def reject(self, engagement_id: str) -> Engagement:
        return await self._transition(
            ActionKind.reject_engagement,
            engagement_id,
            lambda e, s, siblings: self._lifecycle.reject(e, s, siblings),
            self._store.reject_engagement,
        )

    async def complete(self, engagement_id: str, now: datetime | None = None) -> Engagement:
        engagement, subject = await self._transition(
            ActionKind.complete_engagement,
            engagement_id,
            lambda e, s, siblings: self._lifecycle.complete(e, s, now=now),
            self._store.complete_engagement,
            with_subject=True,
        )
        if self._completion is not None:
            await self._completion.on_engagement_completed(engagement, subject)
        return engagement

    async def revert(self, engagement_id: str) -> Engagement:
        return await self._transition(
            ActionKind.revert_engagement,
            engagement_id,
            lambda e, s, siblings: self._lifecycle.revert(e, s),
            self._store.revert_engagement,
        )

    # Internals

    async def _transition(
        self,
        action: ActionKind,
        engagement_id: str,
        rule: Callable[[Engagement, BookableSubject, list[Engagement]], Transition],
        submit: Callable[[str, str], object],
        with_subject: bool = False,
    ):
        engagement = await self._find_engagement(engagement_id)
        subject = await self.get_subject(engagement.subject_id, force=True)
        siblings = await self.list_engagements(subject.id, force=True)
        current = next((e for e in siblings if e.id == engagement_id), engagement)

        predicted = rule(current, subject, siblings)
        mutation = Mutation(
            action=action,
            submit=lambda key: submit(engagement_id, key),
            touches=self._touched(subject.id),
            optimistic=self._optimistic(predicted, siblings),
            log_extra={"engagement_id": engagement_id, "subject_id": subject.id},
        )
        result = await self._coordinator.run(mutation)
        if with_subject:
            return result, predicted.subject
        return result

    async def _find_engagement(self, engagement_id: str) -> Engagement:
        for scope in self._cache.scopes(ViewKind.engagements):
            for engagement in self._cache.get(ViewKind.engagements, scope) or []:
                if engagement.id == engagement_id:
                    return engagement
        for engagement in await self._store.get_engagements():
            if engagement.id == engagement_id:
                return engagement
        raise NotFoundError(f"Engagement {engagement_id} not found.")

    async def _with_alternatives(
        self,
        error: ConflictError,
        subject: BookableSubject,
        now: datetime | None,
    ) -> ConflictError:
        if error.alternatives or not subject.is_calendar_bound:
            return error
        try:
            engagements = await self.list_engagements(subject.id, force=True)
        except EngineError as e:
            self._logger.warning("Could not load alternatives", extra={"subject_id": subject.id, "reason": str(e)})
            return error
        alternatives = self._detector.free_pairs(subject.id, subject.calendar, engagements, now=now)
        return ConflictError(str(error), alternatives=alternatives[: self._detector.max_alternatives])

    def _touched(self, subject_id: str) -> list[ViewKey]:
        return [
            (ViewKind.engagements, subject_id),
            (ViewKind.subjects, subject_id),
            (ViewKind.subjects, None),
        ]

    def _optimistic(self, transition: Transition, siblings: list[Engagement]) -> Callable[[ViewCache], None]:
        def apply(cache: ViewCache) -> None:
            subject = transition.subject
            engagement = transition.engagement
            updated = [engagement if e.id == engagement.id else e for e in siblings]
            if all(e.id != engagement.id for e in siblings):
                updated.append(engagement)
            cache.set(ViewKind.engagements, updated, scope=subject.id)
            cache.set(ViewKind.subjects, subject, scope=subject.id)
            listed = cache.get(ViewKind.subjects)
            if listed is not None:
                cache.set(ViewKind.subjects, [subject if s.id == subject.id else s for s in listed])

        return apply

from __future__ import annotations

from abc import ABC, abstractmethod

from booking_engine.domain.entities.engagement import Engagement, EngagementRequest
from booking_engine.domain.entities.notification import NotificationEvent
from booking_engine.domain.entities.subject import BookableSubject


class RemoteStorePort(ABC):
    """
    Narrow request/response contract with the authoritative backend.
    Mutations carry an idempotency key; a replay with the same key must not
    apply twice. No ordering is guaranteed across distinct calls.
    """

    @abstractmethod
    async def create_engagement(self, request: EngagementRequest, idempotency_key: str) -> Engagement:
        raise NotImplementedError

    @abstractmethod
    async def approve_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        raise NotImplementedError

    @abstractmethod
    async def reject_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        raise NotImplementedError

    @abstractmethod
    async def complete_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        raise NotImplementedError

    @abstractmethod
    async def revert_engagement(self, engagement_id: str, idempotency_key: str) -> Engagement:
        """Mark an approved engagement as "did not occur"; the subject reopens."""
        raise NotImplementedError

    @abstractmethod
    async def get_engagements(self, subject_id: str | None = None) -> list[Engagement]:
        raise NotImplementedError

    @abstractmethod
    async def get_subject(self, subject_id: str) -> BookableSubject:
        raise NotImplementedError

    @abstractmethod
    async def get_subjects(self) -> list[BookableSubject]:
        raise NotImplementedError

    @abstractmethod
    async def get_notifications(self) -> list[NotificationEvent]:
        raise NotImplementedError

    @abstractmethod
    async def mark_notification_read(self, notification_id: str, idempotency_key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def clear_notification(self, notification_id: str, idempotency_key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def clear_all_notifications(self, idempotency_key: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None

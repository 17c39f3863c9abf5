from __future__ import annotations

from abc import ABC, abstractmethod

from booking_engine.domain.entities.engagement import Engagement
from booking_engine.domain.entities.subject import BookableSubject


class CompletionPort(ABC):
    @abstractmethod
    async def on_engagement_completed(self, engagement: Engagement, subject: BookableSubject) -> None:
        """Release whatever completion unlocks (certificate minting, payment release)."""
        raise NotImplementedError

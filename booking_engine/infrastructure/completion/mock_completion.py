from __future__ import annotations

import logging

from booking_engine.application.ports.completion import CompletionPort
from booking_engine.domain.entities.engagement import Engagement
from booking_engine.domain.entities.subject import BookableSubject


class MockCompletion(CompletionPort):
    def __init__(self) -> None:
        self.completed: list[tuple[str, str]] = []
        self._logger = logging.getLogger(__name__)

    async def on_engagement_completed(self, engagement: Engagement, subject: BookableSubject) -> None:
        self.completed.append((engagement.id, subject.id))
        self._logger.info(
            "Mock completion side effect",
            extra={"engagement_id": engagement.id, "subject_id": subject.id},
        )

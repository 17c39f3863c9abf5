from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging

from booking_engine.application.consistency.cache import ViewCache, ViewKind
from booking_engine.application.consistency.coordinator import ConsistencyCoordinator
from booking_engine.application.consistency.retry import RetryPolicy
from booking_engine.application.consistency.scheduler import RefreshScheduler
from booking_engine.application.ports.completion import CompletionPort
from booking_engine.application.ports.remote_store import RemoteStorePort
from booking_engine.application.use_cases.conflict_detection import ConflictDetector
from booking_engine.application.use_cases.engagement_lifecycle import EngagementLifecycle
from booking_engine.application.use_cases.engagements import EngagementUseCase
from booking_engine.application.use_cases.notifications import NotificationFeed
from booking_engine.core.config import Settings, settings
from booking_engine.infrastructure.completion.mock_completion import MockCompletion
from booking_engine.infrastructure.remote.http_store import HttpRemoteStore
from booking_engine.infrastructure.remote.memory_store import MemoryRemoteStore


@dataclass
class Engine:
    settings: Settings
    store: RemoteStorePort
    cache: ViewCache
    coordinator: ConsistencyCoordinator
    scheduler: RefreshScheduler
    engagements: EngagementUseCase
    notifications: NotificationFeed

    def watch_feed(self) -> None:
        self.scheduler.register(ViewKind.subjects, self.store.get_subjects, self.settings.POLL_SUBJECTS_SECONDS)
        self.scheduler.register(
            ViewKind.notifications, self.notifications.fetch, self.settings.POLL_NOTIFICATIONS_SECONDS
        )
        self.scheduler.register(
            ViewKind.unread_count, self.notifications.fetch_unread_count, self.settings.POLL_NOTIFICATIONS_SECONDS
        )

    def watch_subject(self, subject_id: str) -> None:
        """Poll one subject's detail views while something is looking at it."""
        self.scheduler.register(
            ViewKind.subjects,
            lambda: self.store.get_subject(subject_id),
            self.settings.POLL_SUBJECTS_SECONDS,
            scope=subject_id,
        )
        self.scheduler.register(
            ViewKind.engagements,
            lambda: self.store.get_engagements(subject_id),
            self.settings.POLL_ENGAGEMENTS_SECONDS,
            scope=subject_id,
        )

    def unwatch_subject(self, subject_id: str) -> None:
        self.scheduler.unregister(ViewKind.subjects, subject_id)
        self.scheduler.unregister(ViewKind.engagements, subject_id)
        self.scheduler.unregister(ViewKind.availability, subject_id)

    async def close(self) -> None:
        try:
            await self.scheduler.stop()
        finally:
            self.cache.clear()
            await self.store.close()


def get_remote_store(config: Settings = settings) -> RemoteStorePort:
    logger = logging.getLogger(__name__)
    if config.REMOTE_STORE_BASE_URL:
        logger.info("Using HttpRemoteStore at %s", config.REMOTE_STORE_BASE_URL)
        return HttpRemoteStore(
            base_url=config.REMOTE_STORE_BASE_URL,
            api_token=config.REMOTE_STORE_API_TOKEN,
            timeout=config.REMOTE_STORE_TIMEOUT_SECONDS,
        )
    if config.ENV.lower() in {"dev", "local", "test"}:
        logger.info("Using MemoryRemoteStore (no REMOTE_STORE_BASE_URL, ENV=%s)", config.ENV)
        return MemoryRemoteStore(lifecycle=_lifecycle(config))
    raise ValueError("REMOTE_STORE_BASE_URL is required outside dev/local.")


def get_retry_policy(config: Settings = settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.RETRY_MAX_ATTEMPTS,
        base_delay=config.RETRY_BASE_DELAY_SECONDS,
        max_delay=config.RETRY_MAX_DELAY_SECONDS,
    )


def build_engine(
    config: Settings = settings,
    store: RemoteStorePort | None = None,
    completion: CompletionPort | None = None,
) -> Engine:
    store = store or get_remote_store(config)
    cache = ViewCache()
    retry = get_retry_policy(config)
    scheduler = RefreshScheduler(cache, backoff=retry)
    coordinator = ConsistencyCoordinator(cache, retry_policy=retry, refresher=scheduler)
    detector = _detector(config)
    engagements = EngagementUseCase(
        store=store,
        coordinator=coordinator,
        lifecycle=EngagementLifecycle(detector=detector),
        detector=detector,
        completion=completion or MockCompletion(),
    )
    return Engine(
        settings=config,
        store=store,
        cache=cache,
        coordinator=coordinator,
        scheduler=scheduler,
        engagements=engagements,
        notifications=NotificationFeed(store=store, coordinator=coordinator),
    )


@lru_cache
def get_engine() -> Engine:
    return build_engine()


def get_engagement_use_case() -> EngagementUseCase:
    return get_engine().engagements


def get_notification_feed() -> NotificationFeed:
    return get_engine().notifications


def _detector(config: Settings) -> ConflictDetector:
    return ConflictDetector(max_alternatives=config.MAX_ALTERNATIVES, grace_minutes=config.SLOT_GRACE_MINUTES)


def _lifecycle(config: Settings) -> EngagementLifecycle:
    return EngagementLifecycle(detector=_detector(config))

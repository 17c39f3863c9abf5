from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping

from booking_engine.application.codec import notification_codec
from booking_engine.application.consistency.cache import ViewCache, ViewKey, ViewKind
from booking_engine.application.consistency.coordinator import ConsistencyCoordinator, Mutation
from booking_engine.application.consistency.invalidation import ActionKind
from booking_engine.application.exceptions import NotFoundError
from booking_engine.application.ports.remote_store import RemoteStorePort
from booking_engine.domain.entities.notification import NotificationEvent

_FEED: ViewKey = (ViewKind.notifications, None)
_UNREAD: ViewKey = (ViewKind.unread_count, None)


@dataclass(frozen=True)
class NotificationView:
    event: NotificationEvent
    subject_id: str | None
    actor_identity: str | None
    actor_name: str
    action_label: str | None


class NotificationFeed:
    def __init__(self, store: RemoteStorePort, coordinator: ConsistencyCoordinator) -> None:
        self._store = store
        self._coordinator = coordinator
        self._cache: ViewCache = coordinator.cache

    async def fetch(self) -> list[NotificationEvent]:
        events = await self._store.get_notifications()
        return sorted(events, key=_newest_first)

    async def events(self, force: bool = False) -> list[NotificationEvent]:
        return await self._cache.load(ViewKind.notifications, self.fetch, force=force)

    async def fetch_unread_count(self) -> int:
        events = await self.events()
        return sum(1 for e in events if not e.is_read)

    async def unread_count(self, force: bool = False) -> int:
        return await self._cache.load(ViewKind.unread_count, self.fetch_unread_count, force=force)

    async def describe(self, profiles: Mapping[str, str] | None = None) -> list[NotificationView]:
        """Decoded feed entries with display names; `profiles` maps identity to display name."""
        views: list[NotificationView] = []
        for event in await self.events():
            context = notification_codec.context_for(event)
            views.append(
                NotificationView(
                    event=event,
                    subject_id=context.subject_id,
                    actor_identity=context.identity(),
                    actor_name=notification_codec.display_name(context, profiles),
                    action_label=context.label(),
                )
            )
        return views

    async def identities_to_resolve(self) -> list[str]:
        return notification_codec.identities_to_resolve(await self.events())

    async def mark_read(self, notification_id: str) -> None:
        events = await self.events()
        if all(e.id != notification_id for e in events):
            raise NotFoundError(f"Notification {notification_id} not found.")

        def apply(cache: ViewCache) -> None:
            updated = [replace(e, is_read=True) if e.id == notification_id else e for e in events]
            cache.set(ViewKind.notifications, updated)
            cache.set(ViewKind.unread_count, sum(1 for e in updated if not e.is_read))

        await self._coordinator.run(
            Mutation(
                action=ActionKind.mark_notification_read,
                submit=lambda key: self._store.mark_notification_read(notification_id, key),
                touches=[_FEED, _UNREAD],
                optimistic=apply,
                log_extra={"notification_id": notification_id},
            )
        )

    async def clear(self, notification_id: str) -> None:
        events = await self.events()
        if all(e.id != notification_id for e in events):
            raise NotFoundError(f"Notification {notification_id} not found.")

        def apply(cache: ViewCache) -> None:
            remaining = [e for e in events if e.id != notification_id]
            cache.set(ViewKind.notifications, remaining)
            cache.set(ViewKind.unread_count, sum(1 for e in remaining if not e.is_read))

        await self._coordinator.run(
            Mutation(
                action=ActionKind.clear_notification,
                submit=lambda key: self._store.clear_notification(notification_id, key),
                touches=[_FEED, _UNREAD],
                optimistic=apply,
                log_extra={"notification_id": notification_id},
            )
        )

    async def clear_all(self) -> None:
        def apply(cache: ViewCache) -> None:
            cache.set(ViewKind.notifications, [])
            cache.set(ViewKind.unread_count, 0)

        await self._coordinator.run(
            Mutation(
                action=ActionKind.clear_all_notifications,
                submit=self._store.clear_all_notifications,
                touches=[_FEED, _UNREAD],
                optimistic=apply,
            )
        )


def _newest_first(event: NotificationEvent) -> float:
    return -event.created_at.timestamp() if event.created_at else 0.0

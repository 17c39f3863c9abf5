from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from booking_engine.application.consistency.cache import ViewKind


class ActionKind(str, Enum):
    create_engagement = "create_engagement"
    approve_engagement = "approve_engagement"
    reject_engagement = "reject_engagement"
    complete_engagement = "complete_engagement"
    revert_engagement = "revert_engagement"
    mark_notification_read = "mark_notification_read"
    clear_notification = "clear_notification"
    clear_all_notifications = "clear_all_notifications"


# Views whose cached copies may be wrong once the action has committed remotely.
ACTION_INVALIDATIONS = MappingProxyType(
    {
        ActionKind.create_engagement: frozenset(
            {
                ViewKind.engagements,
                ViewKind.my_engagements,
                ViewKind.subjects,
                ViewKind.availability,
                ViewKind.notifications,
            }
        ),
        ActionKind.approve_engagement: frozenset(
            {
                ViewKind.engagements,
                ViewKind.my_engagements,
                ViewKind.subjects,
                ViewKind.availability,
                ViewKind.notifications,
            }
        ),
        ActionKind.reject_engagement: frozenset(
            {
                ViewKind.engagements,
                ViewKind.my_engagements,
                ViewKind.subjects,
                ViewKind.availability,
                ViewKind.notifications,
            }
        ),
        ActionKind.complete_engagement: frozenset(
            {
                ViewKind.engagements,
                ViewKind.my_engagements,
                ViewKind.subjects,
                ViewKind.availability,
                ViewKind.notifications,
                ViewKind.payments,
                ViewKind.certificates,
            }
        ),
        ActionKind.revert_engagement: frozenset(
            {
                ViewKind.engagements,
                ViewKind.my_engagements,
                ViewKind.subjects,
                ViewKind.availability,
                ViewKind.notifications,
            }
        ),
        ActionKind.mark_notification_read: frozenset({ViewKind.notifications, ViewKind.unread_count}),
        ActionKind.clear_notification: frozenset({ViewKind.notifications, ViewKind.unread_count}),
        ActionKind.clear_all_notifications: frozenset({ViewKind.notifications, ViewKind.unread_count}),
    }
)


def affected_views(action: ActionKind) -> frozenset[ViewKind]:
    return ACTION_INVALIDATIONS[action]

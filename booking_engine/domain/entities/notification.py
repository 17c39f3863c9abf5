from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NotificationKind(str, Enum):
    offer = "offer"
    comment = "comment"
    reaction = "reaction"
    message = "message"
    task_update = "task_update"
    swap_claim = "swap_claim"
    swap_status_change = "swap_status_change"


# Kinds whose legacy wire payload puts an already-resolved display name in the actor field.
LABEL_CARRYING_KINDS = frozenset({NotificationKind.swap_claim, NotificationKind.swap_status_change})


@dataclass(frozen=True)
class NotificationEvent:
    id: str
    kind: NotificationKind
    subject_id: str | None = None
    actor_ref: str | None = None  # identity of whoever triggered the event
    actor_label: str | None = None  # display name, when the store already resolved it
    action_label: str | None = None  # e.g. swap status, offer outcome, comment id
    is_read: bool = False
    created_at: datetime | None = None

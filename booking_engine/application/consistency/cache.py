from __future__ import annotations

import copy
import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable


class ViewKind(str, Enum):
    subjects = "subjects"
    engagements = "engagements"
    availability = "availability"
    notifications = "notifications"
    unread_count = "unread_count"
    my_engagements = "my_engagements"
    payments = "payments"
    certificates = "certificates"


ViewKey = tuple[ViewKind, str | None]  # (kind, scope), e.g. (engagements, subject_id)


@dataclass
class CachedView:
    value: Any
    generation: int
    stale: bool = False
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ViewSnapshot:
    entries: dict[ViewKey, CachedView | None]  # None: the view did not exist


class ViewCache:
    """
    Locally cached read views, keyed by (kind, scope).

    Every write bumps a process-wide generation number stored on the view.
    A refresh captures the generation before fetching and is applied only if
    it still matches, so responses that raced with a local mutation,
    an invalidation or a drop are discarded instead of overwriting newer state.
    """

    def __init__(self) -> None:
        self._views: dict[ViewKey, CachedView] = {}
        self._generations = itertools.count(1)
        self._logger = logging.getLogger(__name__)

    def get(self, kind: ViewKind, scope: str | None = None, default: Any = None) -> Any:
        view = self._views.get((kind, scope))
        return view.value if view is not None else default

    def has(self, kind: ViewKind, scope: str | None = None) -> bool:
        return (kind, scope) in self._views

    def is_stale(self, kind: ViewKind, scope: str | None = None) -> bool:
        view = self._views.get((kind, scope))
        return view is None or view.stale

    def generation(self, kind: ViewKind, scope: str | None = None) -> int:
        view = self._views.get((kind, scope))
        return view.generation if view is not None else 0

    def scopes(self, kind: ViewKind) -> list[str | None]:
        return [scope for (k, scope) in self._views if k == kind]

    def set(self, kind: ViewKind, value: Any, scope: str | None = None) -> None:
        self._views[(kind, scope)] = CachedView(
            value=value,
            generation=next(self._generations),
            updated_at=datetime.now(timezone.utc),
        )

    def apply_refresh(self, kind: ViewKind, value: Any, generation: int, scope: str | None = None) -> bool:
        if self.generation(kind, scope) != generation:
            self._logger.info(
                "Dropped stale refresh response",
                extra={"action": "refresh", "reason": f"{kind.value}:{scope} changed while in flight"},
            )
            return False
        self.set(kind, value, scope)
        return True

    async def load(
        self,
        kind: ViewKind,
        fetch: Callable[[], Awaitable[Any]],
        scope: str | None = None,
        force: bool = False,
    ) -> Any:
        """Return the cached view, fetching it first when missing, stale or forced."""
        if not force and not self.is_stale(kind, scope):
            return self.get(kind, scope)
        generation = self.generation(kind, scope)
        value = await fetch()
        self.apply_refresh(kind, value, generation, scope=scope)
        return value

    def invalidate(self, kinds: Iterable[ViewKind]) -> list[ViewKey]:
        kinds = set(kinds)
        touched: list[ViewKey] = []
        for key, view in self._views.items():
            if key[0] in kinds:
                view.stale = True
                view.generation = next(self._generations)
                touched.append(key)
        return touched

    def drop(self, kind: ViewKind, scope: str | None = None) -> None:
        self._views.pop((kind, scope), None)

    def snapshot(self, keys: Iterable[ViewKey]) -> ViewSnapshot:
        return ViewSnapshot(
            entries={key: copy.deepcopy(self._views.get(key)) for key in keys},
        )

    def restore(self, snapshot: ViewSnapshot) -> None:
        """Put the snapshotted views back exactly; views absent at snapshot time are removed."""
        for key, view in snapshot.entries.items():
            if view is None:
                self._views.pop(key, None)
                continue
            restored = copy.deepcopy(view)
            restored.generation = next(self._generations)
            self._views[key] = restored

    def clear(self) -> None:
        self._views.clear()

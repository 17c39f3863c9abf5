from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Protocol

from booking_engine.application.consistency.cache import ViewCache, ViewKey, ViewKind
from booking_engine.application.consistency.invalidation import ActionKind, affected_views
from booking_engine.application.consistency.retry import RetryPolicy
from booking_engine.application.exceptions import ConflictError, EngineError, StaleStateError


class Refresher(Protocol):
    async def refresh_kinds(self, kinds: Iterable[ViewKind]) -> None: ...


@dataclass
class Mutation:
    action: ActionKind
    submit: Callable[[str], Awaitable[Any]]  # receives the idempotency key
    touches: list[ViewKey] = field(default_factory=list)
    optimistic: Callable[[ViewCache], None] | None = None
    idempotency_key: str | None = None
    log_extra: dict[str, Any] = field(default_factory=dict)


class ConsistencyCoordinator:
    """
    Runs user-initiated mutations against the remote store:

    1. snapshot the cached views the mutation touches
    2. apply the optimistic change locally
    3. submit with a stable idempotency key, retrying transient failures
    4. on success invalidate and refresh the views the action affects;
       on failure put the snapshot back and re-raise
    """

    def __init__(
        self,
        cache: ViewCache,
        retry_policy: RetryPolicy | None = None,
        refresher: Refresher | None = None,
    ) -> None:
        self._cache = cache
        self._retry = retry_policy or RetryPolicy()
        self._refresher = refresher
        self._logger = logging.getLogger(__name__)

    @property
    def cache(self) -> ViewCache:
        return self._cache

    def attach_refresher(self, refresher: Refresher) -> None:
        self._refresher = refresher

    async def run(self, mutation: Mutation) -> Any:
        key = mutation.idempotency_key or uuid.uuid4().hex
        extra = {"action": mutation.action.value, "idempotency_key": key, **mutation.log_extra}

        snapshot = self._cache.snapshot(mutation.touches)
        if mutation.optimistic is not None:
            try:
                mutation.optimistic(self._cache)
            except Exception:
                self._cache.restore(snapshot)
                raise

        try:
            result = await self._retry.run(lambda: mutation.submit(key), action=mutation.action.value)
        except (StaleStateError, ConflictError) as e:
            self._cache.restore(snapshot)
            self._logger.warning("Action rejected, local views rolled back", extra={**extra, "reason": str(e)})
            # The local picture disagreed with the store; pull fresh copies.
            await self._reconcile(mutation.action)
            raise
        except (Exception, asyncio.CancelledError) as e:
            self._cache.restore(snapshot)
            self._logger.warning("Action failed, local views rolled back", extra={**extra, "reason": type(e).__name__})
            raise

        self._logger.info("Action committed", extra=extra)
        await self._reconcile(mutation.action)
        return result

    async def _reconcile(self, action: ActionKind) -> None:
        kinds = affected_views(action)
        self._cache.invalidate(kinds)
        if self._refresher is None:
            return
        try:
            await self._refresher.refresh_kinds(kinds)
        except EngineError as e:
            # The action itself already settled; the next poll picks the views up again.
            self._logger.warning("Refresh after action failed", extra={"action": action.value, "reason": str(e)})

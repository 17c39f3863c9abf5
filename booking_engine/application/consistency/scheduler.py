from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable

from booking_engine.application.consistency.cache import ViewCache, ViewKey, ViewKind
from booking_engine.application.consistency.retry import RetryPolicy
from booking_engine.application.exceptions import EngineError, NetworkError


@dataclass
class RefreshJob:
    kind: ViewKind
    scope: str | None
    fetch: Callable[[], Awaitable[Any]]
    interval: float
    next_due: float = 0.0
    failures: int = 0

    @property
    def key(self) -> ViewKey:
        return (self.kind, self.scope)


class RefreshScheduler:
    """
    Single owner of background polling. Views register a fetch function and
    an interval; one loop refreshes whatever is due, so polling stops for a
    view as soon as it is unregistered. Failed polls back off using the
    shared RetryPolicy and reset on the next success.
    """

    def __init__(
        self,
        cache: ViewCache,
        backoff: RetryPolicy | None = None,
        tick_seconds: float = 0.5,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._cache = cache
        self._backoff = backoff or RetryPolicy()
        self._tick = tick_seconds
        self._clock = clock
        self._jobs: dict[ViewKey, RefreshJob] = {}
        self._task: asyncio.Task | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def jobs(self) -> list[RefreshJob]:
        return list(self._jobs.values())

    def register(
        self,
        kind: ViewKind,
        fetch: Callable[[], Awaitable[Any]],
        interval: float,
        scope: str | None = None,
    ) -> RefreshJob:
        if interval <= 0:
            raise ValueError("refresh interval must be positive")
        job = RefreshJob(kind=kind, scope=scope, fetch=fetch, interval=interval)
        self._jobs[job.key] = job
        return job

    def unregister(self, kind: ViewKind, scope: str | None = None) -> None:
        """Stop polling a view and forget its cached copy; in-flight responses for it are dropped."""
        self._jobs.pop((kind, scope), None)
        self._cache.drop(kind, scope)

    async def refresh(self, kind: ViewKind, scope: str | None = None) -> bool:
        job = self._jobs.get((kind, scope))
        if job is None:
            return False
        return await self._run_job(job)

    async def refresh_kinds(self, kinds: Iterable[ViewKind]) -> None:
        kinds = set(kinds)
        due = [job for job in self._jobs.values() if job.kind in kinds]
        if due:
            await asyncio.gather(*(self._run_job(job) for job in due))

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        self._logger.info("Refresh scheduler started", extra={"action": "scheduler_start"})

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("Refresh scheduler stopped", extra={"action": "scheduler_stop"})

    async def _loop(self) -> None:
        while True:
            now = self._now()
            due = [job for job in self._jobs.values() if job.next_due <= now]
            if due:
                await asyncio.gather(*(self._run_job(job) for job in due))
            await asyncio.sleep(self._tick)

    async def _run_job(self, job: RefreshJob) -> bool:
        generation = self._cache.generation(job.kind, job.scope)
        try:
            value = await job.fetch()
        except NetworkError as e:
            delay = self._back_off(job)
            self._logger.warning(
                "Refresh failed, backing off %.1fs",
                delay,
                extra={"action": "refresh", "attempt": job.failures, "reason": str(e)},
            )
            return False
        except EngineError as e:
            job.next_due = self._now() + job.interval
            self._logger.error("Refresh rejected", extra={"action": "refresh", "reason": str(e)})
            return False
        except Exception as e:
            # One broken view must not end polling for the others.
            delay = self._back_off(job)
            self._logger.exception(
                "Refresh crashed, backing off %.1fs",
                delay,
                extra={"action": "refresh", "attempt": job.failures, "reason": type(e).__name__},
            )
            return False

        job.failures = 0
        job.next_due = self._now() + job.interval
        if self._jobs.get(job.key) is not job:
            # Unregistered or replaced while the fetch was in flight.
            return False
        return self._cache.apply_refresh(job.kind, value, generation, scope=job.scope)

    def _back_off(self, job: RefreshJob) -> float:
        job.failures += 1
        delay = max(job.interval, self._backoff.delay_for(job.failures - 1))
        job.next_due = self._now() + delay
        return delay

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

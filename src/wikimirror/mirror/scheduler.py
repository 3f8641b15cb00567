"""Debounced, coalescing regeneration of cache targets.

Change notifications arrive before the content store makes the change visible
to readers, so every request waits ``debounce_seconds`` before it runs. All
jobs run on one worker thread in due-time order.

Per key the scheduler tracks one job::

    Idle -> Pending -> Executing -> Idle
              ^            |
              +- follow-up +

A submission while Pending replaces the snapshot and restarts the timer. A
submission while Executing is parked as the single follow-up and becomes
Pending once the running execution finishes. A key is therefore never
executed twice at the same time.
"""

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from enum import Enum

from ..core.errors import SchedulerClosedError
from ..core.logging import log
from ..core.models import Page
from ..core.store import ContentStore
from .fetcher import Fetcher
from .target import CacheTarget, TargetFactory, TargetKey
from .writer import AtomicWriter


class JobState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    EXECUTING = "executing"


class _Job:
    __slots__ = ("key", "page", "due", "generation", "state", "followup")

    def __init__(self, key: TargetKey, page: Page):
        self.key = key
        self.page = page
        self.due = 0.0
        self.generation = 0
        self.state = JobState.PENDING
        self.followup: Page | None = None


def _fmt(key: TargetKey) -> str:
    return "/".join(key)


class RegenerationScheduler:
    def __init__(
        self,
        factory: TargetFactory,
        fetcher: Fetcher,
        writer: AtomicWriter,
        store: ContentStore | None = None,
        debounce_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.factory = factory
        self.fetcher = fetcher
        self.writer = writer
        self.store = store
        self.debounce_seconds = debounce_seconds
        self._clock = clock

        self._cond = threading.Condition()
        self._jobs: dict[TargetKey, _Job] = {}
        # (due, sequence, key, generation); entries whose generation no
        # longer matches the job are stale and skipped
        self._heap: list[tuple[float, int, TargetKey, int]] = []
        self._seq = itertools.count()
        self._thread: threading.Thread | None = None
        self._closed = False
        self._drain = False

        self.completed = 0
        self.failures = 0

    # ---------- lifecycle ----------
    def start(self) -> None:
        with self._cond:
            if self._closed:
                raise SchedulerClosedError("scheduler has been shut down")
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run, name="wikimirror-regenerate", daemon=True
            )
            self._thread.start()
        log.info("scheduler.start", debounce_seconds=self.debounce_seconds)

    def shutdown(self, drain: bool = False, timeout: float | None = None) -> None:
        """Stop the worker.

        With ``drain`` every pending job still runs once its timer expires;
        otherwise pending jobs are dropped and only the running one finishes.
        """
        with self._cond:
            self._closed = True
            self._drain = drain
            if not drain:
                dropped = 0
                for key, job in list(self._jobs.items()):
                    if job.state is JobState.PENDING:
                        del self._jobs[key]
                        dropped += 1
                    else:
                        job.followup = None
                self._heap.clear()
                if dropped:
                    log.info("scheduler.shutdown.dropped", jobs=dropped)
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
        log.info(
            "scheduler.shutdown",
            drain=drain,
            completed=self.completed,
            failures=self.failures,
        )

    def join(self, timeout: float | None = None) -> bool:
        """Block until no job is pending or executing. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._jobs, timeout)

    # ---------- introspection ----------
    def state_of(self, key: TargetKey) -> JobState:
        with self._cond:
            job = self._jobs.get(key)
            return job.state if job else JobState.IDLE

    @property
    def pending_count(self) -> int:
        with self._cond:
            return sum(1 for j in self._jobs.values() if j.state is JobState.PENDING)

    # ---------- submission ----------
    def submit(self, page: Page, evict_immediately: bool = False) -> CacheTarget:
        """Schedule regeneration of ``page`` and return its derived target.

        ``evict_immediately`` deletes the current artifacts before returning,
        for pages known to have moved or changed so stale content is never
        served while the job waits.
        """
        target = self.factory.derive(page)

        with self._cond:
            if self._closed:
                raise SchedulerClosedError("scheduler has been shut down")
            if evict_immediately:
                target.delete()
            job = self._jobs.get(target.key)
            if job is None:
                job = _Job(target.key, page)
                self._jobs[target.key] = job
                self._schedule(job)
                log.debug("scheduler.job.pending", key=_fmt(target.key))
            elif job.state is JobState.PENDING:
                job.page = page
                self._schedule(job)
                log.debug("scheduler.job.merged", key=_fmt(target.key))
            else:
                job.followup = page
                log.debug("scheduler.job.followup", key=_fmt(target.key))
            self._cond.notify_all()
        return target

    def _schedule(self, job: _Job) -> None:
        job.generation += 1
        job.due = self._clock() + self.debounce_seconds
        job.state = JobState.PENDING
        heapq.heappush(self._heap, (job.due, next(self._seq), job.key, job.generation))

    # ---------- worker ----------
    def _next_job(self) -> _Job | None:
        while True:
            if self._closed and not self._drain:
                return None
            if not self._heap:
                if self._closed:
                    return None
                self._cond.wait()
                continue

            due, _, key, generation = self._heap[0]
            job = self._jobs.get(key)
            if job is None or job.generation != generation or job.state is not JobState.PENDING:
                heapq.heappop(self._heap)
                continue

            delay = due - self._clock()
            if delay > 0:
                self._cond.wait(delay)
                continue

            heapq.heappop(self._heap)
            job.state = JobState.EXECUTING
            return job

    def _run(self) -> None:
        while True:
            with self._cond:
                job = self._next_job()
                if job is None:
                    return
                page = job.page

            self._execute(job.key, page)

            with self._cond:
                if job.followup is not None:
                    job.page = job.followup
                    job.followup = None
                    self._schedule(job)
                else:
                    del self._jobs[job.key]
                self._cond.notify_all()

    def _refresh(self, page: Page) -> Page | None:
        if self.store is None:
            return page
        return self.store.get_page(page.id)

    def _execute(self, key: TargetKey, page: Page) -> None:
        target: CacheTarget | None = None
        started = time.monotonic()
        try:
            submitted = self.factory.derive(page)
            fresh = self._refresh(page)
            if fresh is None:
                log.info("scheduler.job.page_gone", key=_fmt(key), page_id=page.id)
                submitted.delete()
                self.completed += 1
                return

            target = self.factory.derive(fresh)
            if target.key != submitted.key:
                # renamed while the job was waiting
                submitted.delete()
            target.delete()

            if not target.cacheable:
                log.info("scheduler.job.nocache", key=_fmt(target.key))
                self.completed += 1
                return

            log.info("scheduler.job.regenerate", key=_fmt(target.key), url=target.source_url)
            result = self.fetcher.fetch(target.source_url)
            if not result.ok:
                self.failures += 1
                return

            self.writer.write(target.output_paths, result.body or "")
            self.completed += 1
            log.info(
                "scheduler.job.done",
                key=_fmt(target.key),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        except Exception:
            self.failures += 1
            log.exception(
                "scheduler.job.failed",
                key=_fmt(key),
                url=target.source_url if target else None,
            )

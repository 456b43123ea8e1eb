"""
Run coordinator: named recurring jobs, manual triggers, pause/resume and
graceful shutdown.

Every run executes on one worker thread. The Playwright session is bound to the
thread that launched it, and runs of different kinds must not interleave on
the shared browser anyway. On top of that each kind is single-flight: a firing
while the same kind is still queued or running is skipped, not queued.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from linkedin_agent.config import Settings
from linkedin_agent.errors import ChallengeRequiredError, RunInterrupted, StoreError, UnknownTaskError
from linkedin_agent.log import get_logger, run_context
from linkedin_agent.models import RunOutcome, RunStatus, TaskKind
from linkedin_agent.session import SessionManager
from linkedin_agent.store import Database
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)


def parse_time_of_day(value: str) -> tuple[int, int]:
    hour, _, minute = value.strip().partition(":")
    h, m = int(hour), int(minute or 0)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return h, m


@dataclass
class ScheduledJob:
    kind: TaskKind
    task: ScrapeTask
    interval_minutes: int | None = None
    daily_at: str | None = None
    business_hours_only: bool = False
    paused: bool = False
    active: bool = False
    next_run: datetime | None = None
    last_started: datetime | None = None
    last_finished: datetime | None = None
    last_status: str | None = None
    last_error: str | None = None
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    timer: threading.Thread | None = field(default=None, repr=False)

    @property
    def schedule(self) -> str:
        if self.daily_at:
            return f"daily at {self.daily_at}"
        return f"every {self.interval_minutes} min"

    def next_fire_time(self, now: datetime, previous: datetime | None = None) -> datetime:
        if self.daily_at:
            h, m = parse_time_of_day(self.daily_at)
            target = now.replace(hour=h, minute=m, second=0, microsecond=0)
            if target <= now:
                target += timedelta(days=1)
            return target
        step = timedelta(minutes=max(1, self.interval_minutes or 1))
        nxt = (previous or now) + step
        while nxt <= now:
            nxt += step
        return nxt

    def snapshot(self) -> dict[str, Any]:
        return {
            "schedule": self.schedule,
            "paused": self.paused,
            "running": self.active,
            "business_hours_only": self.business_hours_only,
            "next_run": self.next_run.isoformat(timespec="seconds") if self.next_run else None,
            "last_started": self.last_started.isoformat(timespec="seconds") if self.last_started else None,
            "last_finished": self.last_finished.isoformat(timespec="seconds") if self.last_finished else None,
            "last_status": self.last_status,
            "last_error": self.last_error,
            "runs": self.runs,
            "failures": self.failures,
            "skipped": self.skipped,
        }


class Coordinator:
    def __init__(
        self,
        settings: Settings,
        store: Database,
        sessions: SessionManager,
        tasks: dict[TaskKind, ScrapeTask],
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.settings = settings
        self.store = store
        self.sessions = sessions
        self.tasks = tasks
        self._clock = clock
        self._lock = threading.RLock()
        self._jobs: dict[TaskKind, ScheduledJob] = {}
        # unscheduled kinds run by hand; one record per kind for the coordinator's lifetime
        self._adhoc: dict[TaskKind, ScheduledJob] = {}
        # kinds queued or running, whichever record fired them
        self._active: set[TaskKind] = set()
        self._timers_stop = threading.Event()
        self._abort = threading.Event()
        self._inflight: set[Future] = set()
        self._started = False
        self._closed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-worker")
        sessions.gate.add_listener(self._on_challenge)

    # -- registry -----------------------------------------------------------

    def _default_jobs(self) -> list[ScheduledJob]:
        s = self.settings
        jobs = [
            ScheduledJob(TaskKind.DISCOVERY, self.tasks[TaskKind.DISCOVERY], interval_minutes=s.scrape_interval_minutes),
            ScheduledJob(TaskKind.STATUS_CHECK, self.tasks[TaskKind.STATUS_CHECK], interval_minutes=s.track_interval_minutes),
            ScheduledJob(TaskKind.RESEARCH, self.tasks[TaskKind.RESEARCH], interval_minutes=s.company_interval_minutes),
            ScheduledJob(TaskKind.MAINTENANCE, self.tasks[TaskKind.MAINTENANCE], daily_at=s.maintenance_time),
        ]
        if s.auto_apply_enabled:
            jobs.append(ScheduledJob(
                TaskKind.AUTO_APPLY,
                self.tasks[TaskKind.AUTO_APPLY],
                interval_minutes=s.auto_apply_interval_minutes,
                business_hours_only=s.business_hours_only,
            ))
        else:
            log.info("Auto-apply is disabled; not scheduling it")
        return jobs

    def register(self, job: ScheduledJob) -> None:
        with self._lock:
            if job.kind in self._jobs:
                raise ValueError(f"{job.kind.value} is already registered")
            self._jobs[job.kind] = job
        if self._started:
            self._start_timer(job)

    def _job(self, kind: TaskKind | str) -> ScheduledJob:
        k = TaskKind.parse(kind)
        with self._lock:
            job = self._jobs.get(k)
            if job is None:
                job = self._adhoc.get(k)
            if job is None:
                if k not in self.tasks:
                    raise UnknownTaskError(k.value)
                job = self._adhoc[k] = ScheduledJob(k, self.tasks[k])
        return job

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Coordinator has been shut down")
            if self._started:
                log.warning("Scheduler is already running")
                return
            self._started = True
            self._timers_stop = threading.Event()
            for job in self._default_jobs():
                self._jobs.setdefault(job.kind, job)
            jobs = list(self._jobs.values())
        for job in jobs:
            self._start_timer(job)
        log.info("Scheduler started with %d job(s): %s", len(jobs), ", ".join(
            f"{j.kind.value} ({j.schedule})" for j in jobs
        ))

    def stop(self) -> None:
        """Stop every timer and clear the registry; in-flight runs finish normally."""
        with self._lock:
            if not self._started:
                return
            self._started = False
            self._timers_stop.set()
            timers = [j.timer for j in self._jobs.values() if j.timer is not None]
            self._jobs.clear()
        for t in timers:
            t.join(timeout=2)
        log.info("Scheduler stopped")

    def _start_timer(self, job: ScheduledJob) -> None:
        stop = self._timers_stop
        job.timer = threading.Thread(
            target=self._timer_loop, args=(job, stop), name=f"timer-{job.kind.value}", daemon=True
        )
        job.timer.start()

    def _timer_loop(self, job: ScheduledJob, stop: threading.Event) -> None:
        previous: datetime | None = None
        while not stop.is_set():
            now = self._clock()
            job.next_run = job.next_fire_time(now, previous)
            if stop.wait(max(0.0, (job.next_run - now).total_seconds())):
                break
            previous = job.next_run
            self._fire(job, "schedule")

    # -- firing -------------------------------------------------------------

    def _fire(self, job: ScheduledJob, trigger: str) -> Future | None:
        now = self._clock()
        with self._lock:
            if self._closed:
                return None
            if trigger == "schedule":
                if job.paused:
                    log.debug("%s is paused, firing ignored", job.kind.value)
                    return None
                if job.business_hours_only and not self.settings.in_business_hours(now.hour):
                    job.skipped += 1
                    log.info(
                        "%s skipped: outside business hours (%02d:00-%02d:59)",
                        job.kind.value, self.settings.business_hours_start, self.settings.business_hours_end,
                    )
                    return None
            if job.kind in self._active:
                job.skipped += 1
                log.info("%s skipped: previous run still in progress", job.kind.value)
                return None
            job.active = True
            self._active.add(job.kind)
            try:
                future = self._executor.submit(self._execute, job, trigger)
            except RuntimeError:
                job.active = False
                self._active.discard(job.kind)
                return None
            self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)
        return future

    def trigger(self, kind: TaskKind | str) -> bool:
        """Fire-and-forget manual run, scheduled or not.

        False when the kind is already in flight or the coordinator is shut down.
        """
        job = self._job(kind)
        accepted = self._fire(job, "manual") is not None
        log.info("Manual trigger of %s %s", job.kind.value, "accepted" if accepted else "ignored")
        return accepted

    def run_now(self, kind: TaskKind | str) -> RunOutcome | None:
        """Run synchronously and return the outcome; None when already in flight."""
        future = self._fire(self._job(kind), "manual")
        return future.result() if future is not None else None

    def pause(self, kind: TaskKind | str) -> None:
        job = self._job(kind)
        job.paused = True
        log.info("Paused %s", job.kind.value)

    def resume(self, kind: TaskKind | str) -> None:
        job = self._job(kind)
        job.paused = False
        log.info("Resumed %s (%s)", job.kind.value, job.schedule)

    # -- execution (worker thread) ------------------------------------------

    def _execute(self, job: ScheduledJob, trigger: str) -> RunOutcome:
        started = self._clock()
        t0 = time.monotonic()
        job.last_started = started
        timeout = self.settings.task_timeout_minutes
        ctx = TaskContext(
            store=self.store,
            sessions=self.sessions,
            settings=self.settings,
            deadline=t0 + timeout * 60 if timeout > 0 else None,
            stop_event=self._abort,
            trigger=trigger,
            clock=self._clock,
        )
        try:
            with run_context(job.kind.value):
                try:
                    outcome = job.task.run(ctx)
                except Exception as exc:
                    outcome = self._failed(job, ctx, exc, started, t0)
            try:
                self.store.record_run(outcome)
            except StoreError as exc:
                log.error("Could not record %s outcome: %s", job.kind.value, exc)
            with self._lock:
                job.runs += 1
                job.last_status = RunStatus(outcome.status).value
                job.last_error = outcome.error_message
                if not outcome.ok:
                    job.failures += 1
            return outcome
        finally:
            with self._lock:
                job.active = False
                self._active.discard(job.kind)
                job.last_finished = self._clock()

    def _failed(self, job: ScheduledJob, ctx: TaskContext, exc: Exception, started: datetime, t0: float) -> RunOutcome:
        if isinstance(exc, ChallengeRequiredError):
            log.error("%s needs a human: %s. Run interactively to clear it.", job.kind.value, exc)
        elif isinstance(exc, RunInterrupted):
            log.warning("%s interrupted: %s", job.kind.value, exc)
        else:
            log.error("%s failed: %s: %s", job.kind.value, type(exc).__name__, exc, exc_info=True)
        return RunOutcome(
            kind=job.kind.value,
            status=RunStatus.ERROR,
            items_processed=ctx.tally.processed,
            errors_count=ctx.tally.errors,
            duration_ms=int((time.monotonic() - t0) * 1000),
            started_at=started.isoformat(timespec="seconds"),
            completed_at=self._clock().isoformat(timespec="seconds"),
            error_message=str(exc),
            error_type=type(exc).__name__,
            trigger=ctx.trigger,
        )

    def _on_challenge(self, kind: str) -> None:
        log.warning("Scheduler blocked on %s verification; resolve it from the control channel", kind)

    # -- status & shutdown --------------------------------------------------

    def status(self) -> dict[str, Any]:
        with self._lock:
            jobs = {k.value: j.snapshot() for k, j in self._jobs.items()}
        return {
            "running": self._started,
            "session_state": self.sessions.state.value,
            "pending_challenge": self.sessions.gate.pending,
            "jobs": jobs,
        }

    def shutdown(self, drain_timeout: float | None = None) -> bool:
        """Stop scheduling, let the in-flight run finish, release resources.

        Returns False when the in-flight run did not finish within the timeout.
        """
        if self._closed:
            return True
        drain = self.settings.drain_timeout_seconds if drain_timeout is None else drain_timeout
        log.info("Shutting down (drain timeout %ss)", drain)
        self.stop()
        with self._lock:
            self._closed = True
            pending = list(self._inflight)
        for f in pending:
            f.cancel()
        self._abort.set()
        self.sessions.gate.abandon()

        done, not_done = wait(pending, timeout=drain)
        drained = not not_done
        if drained:
            try:
                self._executor.submit(self.sessions.close).result(timeout=30)
            except Exception as exc:
                log.error("Closing session failed: %s", exc)
        else:
            log.warning("%d run(s) still in flight after %ss; leaving the browser to exit with the process", len(not_done), drain)
        self._executor.shutdown(wait=False)
        try:
            self.store.close()
        except StoreError as exc:
            log.error("Closing store failed: %s", exc)
        log.info("Shutdown complete")
        return drained

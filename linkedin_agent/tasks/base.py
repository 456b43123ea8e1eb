"""
Common contract for scrape tasks.

A task's ``run()`` opens a session lease, walks its items, and returns a
RunOutcome. A failure confined to one item is logged and counted; session,
store and interruption errors abort the run and reach the scheduler.
"""
from __future__ import annotations

import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from linkedin_agent.config import Settings
from linkedin_agent.errors import RunAbandoned, RunInterrupted, SessionError, StoreError, TaskTimeoutError
from linkedin_agent.log import get_logger
from linkedin_agent.models import RunOutcome, RunStatus, SearchFilter, TaskKind
from linkedin_agent.session import SessionManager
from linkedin_agent.store import Database

log = get_logger(__name__)

_FATAL = (SessionError, StoreError, RunInterrupted)


@dataclass
class RunTally:
    """Counters shared with the scheduler so a raised run still reports progress."""

    processed: int = 0
    errors: int = 0
    skipped: int = 0
    last_error: str | None = None


@dataclass
class TaskContext:
    store: Database
    sessions: SessionManager
    settings: Settings
    deadline: float | None = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    tally: RunTally = field(default_factory=RunTally)
    trigger: str = "schedule"
    clock: Callable[[], datetime] = datetime.now
    sleep: Callable[[float], Any] | None = None

    def now(self) -> datetime:
        return self.clock()

    def check(self) -> None:
        """Cooperative cancellation point."""
        if self.stop_event.is_set():
            raise RunAbandoned("Shutdown requested")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise TaskTimeoutError("Run exceeded its time limit")

    def pace(self, min_ms: int | None = None, max_ms: int | None = None) -> None:
        """Random pause between items; also where a run notices shutdown or timeout."""
        self.check()
        lo = self.settings.item_delay_min_ms if min_ms is None else min_ms
        hi = self.settings.item_delay_max_ms if max_ms is None else max_ms
        delay = random.uniform(lo, max(lo, hi)) / 1000
        if self.deadline is not None:
            delay = min(delay, max(0.0, self.deadline - time.monotonic()))
        if self.sleep is not None:
            self.sleep(delay)
        elif self.stop_event.wait(delay):
            raise RunAbandoned("Shutdown requested")
        self.check()


class ScrapeTask(ABC):
    kind: TaskKind

    def run(self, ctx: TaskContext, filters: SearchFilter | None = None) -> RunOutcome:
        started = ctx.now()
        t0 = time.monotonic()
        log.info("%s: starting (%s)", self.kind.value, ctx.trigger)
        self.execute(ctx, filters)
        status = RunStatus.SUCCESS if ctx.tally.errors == 0 else RunStatus.PARTIAL
        outcome = RunOutcome(
            kind=self.kind.value,
            status=status,
            items_processed=ctx.tally.processed,
            errors_count=ctx.tally.errors,
            duration_ms=int((time.monotonic() - t0) * 1000),
            started_at=started.isoformat(timespec="seconds"),
            completed_at=ctx.now().isoformat(timespec="seconds"),
            error_message=ctx.tally.last_error,
            trigger=ctx.trigger,
        )
        log.info(
            "%s: %s, %d processed, %d errors, %d skipped in %.1fs",
            self.kind.value,
            status.value,
            outcome.items_processed,
            outcome.errors_count,
            ctx.tally.skipped,
            outcome.duration_ms / 1000,
        )
        return outcome

    @abstractmethod
    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        ...

    def process_item(self, ctx: TaskContext, label: str, fn: Callable[[], Any]) -> Any:
        """Run one item; count and swallow anything that is not run-fatal."""
        try:
            return fn()
        except _FATAL:
            raise
        except Exception as exc:
            ctx.tally.errors += 1
            ctx.tally.last_error = f"{label}: {exc}"
            log.warning("%s: item %s failed: %s", self.kind.value, label, exc)
            return None

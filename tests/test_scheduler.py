"""Tests for the run coordinator: firing rules, outcome recording, shutdown."""
from __future__ import annotations

import threading
import time
from datetime import timedelta
from pathlib import Path

import pytest

from fakes import FakeApplicationsPage, FakeBoard, FakeDirectory, FakeForm
from linkedin_agent.errors import ChallengeRequiredError, RunAbandoned, UnknownTaskError
from linkedin_agent.models import RunStatus, TaskKind
from linkedin_agent.scheduler import Coordinator, ScheduledJob, parse_time_of_day
from linkedin_agent.session import SessionState
from linkedin_agent.tasks import AutoApplyTask, DiscoveryTask, MaintenanceTask, ResearchTask, StatusCheckTask
from linkedin_agent.tasks.base import ScrapeTask


class BlockingTask(ScrapeTask):
    kind = TaskKind.DISCOVERY

    def __init__(self, kind: TaskKind | None = None, order: list | None = None) -> None:
        if kind is not None:
            self.kind = kind
        self.order = order if order is not None else []
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def execute(self, ctx, filters) -> None:
        self.calls += 1
        self.order.append(("start", self.kind.value))
        self.started.set()
        self.release.wait(5)
        ctx.tally.processed += 1
        self.order.append(("end", self.kind.value))


class PacingTask(ScrapeTask):
    """Loops on the cooperative pause until interrupted."""

    kind = TaskKind.RESEARCH

    def __init__(self) -> None:
        self.started = threading.Event()
        self.interrupted: BaseException | None = None

    def execute(self, ctx, filters) -> None:
        self.started.set()
        try:
            while True:
                ctx.pace(50, 50)
        except BaseException as exc:
            self.interrupted = exc
            raise


class RaisingTask(ScrapeTask):
    kind = TaskKind.AUTO_APPLY

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def execute(self, ctx, filters) -> None:
        ctx.tally.processed += 2
        raise self.exc


def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)


@pytest.fixture
def tasks():
    return {
        TaskKind.DISCOVERY: DiscoveryTask(FakeBoard([])),
        TaskKind.STATUS_CHECK: StatusCheckTask(FakeApplicationsPage({})),
        TaskKind.RESEARCH: ResearchTask(FakeDirectory({})),
        TaskKind.AUTO_APPLY: AutoApplyTask(FakeForm()),
        TaskKind.MAINTENANCE: MaintenanceTask(),
    }


@pytest.fixture
def coordinator(settings, store, sessions, tasks, clock):
    coord = Coordinator(settings, store, sessions, tasks, clock=clock)
    yield coord
    coord.shutdown(drain_timeout=2)


def test_parse_time_of_day() -> None:
    assert parse_time_of_day("02:30") == (2, 30)
    assert parse_time_of_day("7") == (7, 0)
    with pytest.raises(ValueError):
        parse_time_of_day("25:00")


def test_next_fire_time(clock) -> None:
    now = clock()
    interval = ScheduledJob(TaskKind.DISCOVERY, None, interval_minutes=10)
    assert interval.next_fire_time(now) == now + timedelta(minutes=10)
    assert interval.next_fire_time(now, now - timedelta(minutes=25)) == now + timedelta(minutes=5)

    daily = ScheduledJob(TaskKind.MAINTENANCE, None, daily_at="02:00")
    assert daily.next_fire_time(now) == (now + timedelta(days=1)).replace(hour=2, minute=0)
    assert daily.next_fire_time(now.replace(hour=1)) == now.replace(hour=2, minute=0)


def test_start_registers_default_schedule(coordinator) -> None:
    coordinator.start()
    coordinator.start()

    status = coordinator.status()
    assert status["running"] is True
    assert set(status["jobs"]) == {k.value for k in TaskKind}
    assert status["jobs"]["maintenance"]["schedule"] == "daily at 02:00"
    _wait_for(lambda: coordinator.status()["jobs"]["job_scrape"]["next_run"] is not None)

    coordinator.stop()
    assert coordinator.status() == {
        "running": False, "session_state": "unauthenticated", "pending_challenge": None, "jobs": {},
    }


def test_auto_apply_not_scheduled_when_disabled(settings, coordinator) -> None:
    settings.auto_apply_enabled = False
    coordinator.start()
    assert "auto_apply" not in coordinator.status()["jobs"]


def test_duplicate_firing_is_skipped(coordinator, store) -> None:
    task = BlockingTask()
    coordinator.register(ScheduledJob(TaskKind.DISCOVERY, task, interval_minutes=10))

    assert coordinator.trigger("job_scrape") is True
    assert task.started.wait(2)
    assert coordinator.trigger(TaskKind.DISCOVERY) is False
    task.release.set()
    _wait_for(lambda: coordinator.status()["jobs"]["job_scrape"]["runs"] == 1)

    info = coordinator.status()["jobs"]["job_scrape"]
    assert info["skipped"] == 1
    assert task.calls == 1
    assert [r.trigger for r in store.list_runs()] == ["manual"]


def test_business_hours_gate_scheduled_but_not_manual(coordinator, clock, store) -> None:
    job = ScheduledJob(TaskKind.AUTO_APPLY, RaisingTask(ValueError("x")), interval_minutes=60, business_hours_only=True)
    coordinator.register(job)
    clock.advance(hours=9)

    assert coordinator._fire(job, "schedule") is None
    assert job.skipped == 1
    assert store.list_runs() == []

    outcome = coordinator.run_now("auto_apply")
    assert outcome.trigger == "manual"


def test_paused_job_ignores_schedule(coordinator) -> None:
    job = ScheduledJob(TaskKind.DISCOVERY, BlockingTask(), interval_minutes=10)
    coordinator.register(job)
    coordinator.pause("job_scrape")

    assert coordinator._fire(job, "schedule") is None
    assert coordinator.status()["jobs"]["job_scrape"]["paused"] is True
    coordinator.resume("job_scrape")
    assert job.paused is False


def test_failed_run_is_recorded_with_error_type(coordinator, store) -> None:
    coordinator.register(ScheduledJob(TaskKind.AUTO_APPLY, RaisingTask(ChallengeRequiredError("captcha"))))

    outcome = coordinator.run_now("auto_apply")

    assert outcome.status is RunStatus.ERROR
    assert outcome.error_type == "ChallengeRequiredError"
    assert outcome.items_processed == 2
    last = store.last_run("auto_apply")
    assert last.error_type == "ChallengeRequiredError"
    assert last.status is RunStatus.ERROR
    info = coordinator.status()["jobs"]["auto_apply"]
    assert info["failures"] == 1
    assert info["last_status"] == "error"


def test_run_now_uses_unscheduled_task(coordinator, store, settings) -> None:
    outcome = coordinator.run_now("maintenance")

    assert outcome.status is RunStatus.SUCCESS
    assert store.last_run("maintenance").trigger == "manual"
    assert list(Path(settings.reports_dir).glob("daily_*.md"))


def test_unknown_task_is_rejected(settings, store, sessions, clock) -> None:
    coord = Coordinator(settings, store, sessions, {TaskKind.MAINTENANCE: MaintenanceTask()}, clock=clock)
    try:
        with pytest.raises(UnknownTaskError):
            coord.trigger("bogus")
        with pytest.raises(UnknownTaskError):
            coord.trigger("company_scrape")
    finally:
        coord.shutdown(drain_timeout=2)


def test_unscheduled_kind_is_single_flight(settings, store, sessions, tasks, clock) -> None:
    task = BlockingTask(TaskKind.MAINTENANCE)
    tasks[TaskKind.MAINTENANCE] = task
    coord = Coordinator(settings, store, sessions, tasks, clock=clock)
    try:
        assert coord.trigger("maintenance") is True
        assert task.started.wait(2)
        assert coord.trigger("maintenance") is False
        assert coord.run_now(TaskKind.MAINTENANCE) is None
        task.release.set()
        _wait_for(lambda: not coord._job("maintenance").active)

        assert task.calls == 1
        assert len(store.list_runs()) == 1
        assert store.last_run("maintenance").trigger == "manual"
        assert coord.run_now("maintenance").status is RunStatus.SUCCESS
        assert task.calls == 2
    finally:
        task.release.set()
        coord.shutdown(drain_timeout=2)


def test_runs_of_different_kinds_never_overlap(coordinator, store) -> None:
    order: list[tuple[str, str]] = []
    first = BlockingTask(TaskKind.DISCOVERY, order)
    second = BlockingTask(TaskKind.STATUS_CHECK, order)
    coordinator.register(ScheduledJob(TaskKind.DISCOVERY, first, interval_minutes=10))
    coordinator.register(ScheduledJob(TaskKind.STATUS_CHECK, second, interval_minutes=10))

    assert coordinator.trigger("job_scrape") is True
    assert first.started.wait(2)
    assert coordinator.trigger("application_check") is True
    assert not second.started.wait(0.2)

    first.release.set()
    assert second.started.wait(2)
    second.release.set()
    _wait_for(lambda: len(store.list_runs()) == 2)

    assert order == [
        ("start", "job_scrape"), ("end", "job_scrape"),
        ("start", "application_check"), ("end", "application_check"),
    ]


def test_shutdown_interrupts_run_and_releases_resources(settings, store, sessions, tasks, clock, browser) -> None:
    task = PacingTask()
    coord = Coordinator(settings, store, sessions, tasks, clock=clock)
    coord.register(ScheduledJob(TaskKind.RESEARCH, task, interval_minutes=120))
    sessions.ensure_authenticated()

    coord.trigger("company_scrape")
    assert task.started.wait(2)
    assert coord.shutdown(drain_timeout=2) is True

    assert isinstance(task.interrupted, RunAbandoned)
    assert sessions.state is SessionState.CLOSED
    assert browser.closed == 1
    assert store.closed
    assert coord.trigger("company_scrape") is False


def test_shutdown_reports_undrained_run(settings, store, sessions, tasks, clock) -> None:
    task = BlockingTask()
    coord = Coordinator(settings, store, sessions, tasks, clock=clock)
    coord.register(ScheduledJob(TaskKind.DISCOVERY, task))

    coord.trigger("job_scrape")
    assert task.started.wait(2)
    try:
        assert coord.shutdown(drain_timeout=0.1) is False
        assert sessions.state is not SessionState.CLOSED
    finally:
        task.release.set()

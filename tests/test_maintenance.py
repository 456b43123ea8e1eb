"""Tests for the nightly maintenance run and the daily report."""
from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from fakes import make_job
from linkedin_agent.models import Application, RunOutcome, RunStatus
from linkedin_agent.report import build_daily_report, write_daily_report
from linkedin_agent.tasks import MaintenanceTask
from linkedin_agent.tasks.auto_apply import DAILY_COUNT_SETTING


def test_report_covers_one_day(store, clock) -> None:
    store.upsert_job(make_job("1", title="Data Engineer", match_score=80))
    store.create_application(Application(job_id="1", application_id="auto_1"))
    store.record_run(RunOutcome(
        "auto_apply", RunStatus.ERROR, started_at=clock().isoformat(timespec="seconds"),
        error_type="ChallengeRequiredError", error_message="captcha",
    ))
    clock.advance(days=1)
    store.upsert_job(make_job("2", title="Tomorrow Job"))

    report = build_daily_report(store, clock() - timedelta(days=1))

    assert report.startswith("# LinkedIn Agent Report: 2026-10-18")
    assert "Data Engineer" in report
    assert "Tomorrow Job" not in report
    assert "**1** applications" in report
    assert "Needs attention" in report


def test_write_daily_report_creates_directory(tmp_path, clock) -> None:
    path = write_daily_report("# hi", tmp_path / "nested" / "reports", clock())
    assert path == tmp_path / "nested" / "reports" / "daily_2026-10-18.md"
    assert path.read_text(encoding="utf-8") == "# hi"


def test_maintenance_prunes_compacts_and_resets_counter(ctx, clock) -> None:
    s = ctx.settings
    s.job_retention_days = 30
    s.history_compact_after_days = 60
    s.history_keep_entries = 2
    store = ctx.store

    clock.advance(days=-100)
    store.upsert_job(make_job("stale"))
    store.upsert_job(make_job("kept"))
    store.create_application(Application(job_id="kept", application_id="app"))
    for status in ("Application viewed", "Shortlisted", "Interview scheduled"):
        store.record_status_change("app", status)
    store.record_run(RunOutcome("job_scrape", RunStatus.SUCCESS, started_at=clock().isoformat(timespec="seconds")))
    clock.advance(days=100)
    store.set_setting(DAILY_COUNT_SETTING, 7)

    outcome = MaintenanceTask().run(ctx)

    assert outcome.status is RunStatus.SUCCESS
    assert outcome.items_processed == 3
    assert [j.job_id for j in store.list_jobs()] == ["kept"]
    assert store.list_runs() == []
    assert len(store.get_application("app").status_history) == 2
    assert store.get_setting(DAILY_COUNT_SETTING) == "0"
    assert (Path(s.reports_dir) / "daily_2026-10-17.md").exists()

"""Tests for the SQLite store: upsert semantics, application rules, maintenance."""
from __future__ import annotations

from datetime import timedelta

import pytest

from fakes import make_job
from linkedin_agent.errors import ConflictError, DailyCapReached, NotFoundError, ValidationError
from linkedin_agent.models import Application, Company, Recruiter, RunOutcome, RunStatus, SearchFilter


def _apply(store, job_id: str, app_id: str | None = None, **kw) -> Application:
    return store.create_application(Application(job_id=job_id, application_id=app_id or f"auto_{job_id}"), **kw)


def test_upsert_same_key_keeps_one_row_with_last_attributes(store) -> None:
    assert store.upsert_job(make_job("1", title="First", match_score=10)) is True
    assert store.upsert_job(make_job("1", title="Second", location="Berlin", match_score=80)) is False

    jobs = store.list_jobs()
    assert len(jobs) == 1
    assert jobs[0].title == "Second"
    assert jobs[0].location == "Berlin"
    assert jobs[0].match_score == 80


def test_upsert_preserves_applied_flag_and_first_seen(store, clock) -> None:
    store.upsert_job(make_job("1"))
    first_seen = store.get_job("1").scraped_at
    _apply(store, "1")

    clock.advance(hours=5)
    store.upsert_job(make_job("1", title="Renamed"))

    job = store.get_job("1")
    assert job.is_applied is True
    assert job.scraped_at == first_seen
    assert job.title == "Renamed"


def test_upsert_rejects_malformed_job(store) -> None:
    with pytest.raises(ValidationError):
        store.upsert_job(make_job("1", title=""))
    assert store.list_jobs() == []


def test_keywords_round_trip_as_list(store) -> None:
    store.upsert_job(make_job("1", keywords_matched=["sql", "python", "sql"]))
    assert store.get_job("1").keywords_matched == ["python", "sql"]


def test_get_job_missing_raises_not_found(store) -> None:
    assert store.find_job("nope") is None
    assert store.job_exists("nope") is False
    with pytest.raises(NotFoundError):
        store.get_job("nope")


def test_create_application_flags_job(store) -> None:
    store.upsert_job(make_job("1"))
    app = _apply(store, "1")

    assert app.id is not None
    assert store.get_job("1").is_applied is True
    assert store.get_application("auto_1").status == "Applied"


def test_second_application_for_same_job_conflicts(store) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "a")
    with pytest.raises(ConflictError):
        _apply(store, "1", "b")
    assert len(store.list_applications()) == 1


def test_application_for_unknown_job_is_not_found(store) -> None:
    with pytest.raises(NotFoundError):
        _apply(store, "ghost")


def test_daily_cap_is_checked_inside_the_insert(store, clock) -> None:
    for i in range(4):
        store.upsert_job(make_job(str(i)))

    clock.advance(days=-1)
    _apply(store, "0")
    clock.advance(days=1)
    _apply(store, "1", daily_cap=2)
    _apply(store, "2", daily_cap=2)

    with pytest.raises(DailyCapReached) as err:
        _apply(store, "3", daily_cap=2)
    assert err.value.count == 2
    assert store.get_job("3").is_applied is False
    assert store.count_applications_on() == 2


def test_status_history_is_append_only_chain(store, clock) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "app")
    statuses = ["Application viewed", "Shortlisted", "Interview scheduled", "Hired"]
    for status in statuses:
        clock.advance(hours=1)
        store.record_status_change("app", status)

    app = store.get_application("app")
    assert app.status == "Hired"
    assert len(app.status_history) == len(statuses)
    assert app.status_history[0].previous_status == "Applied"
    for prev, cur in zip(app.status_history, app.status_history[1:]):
        assert cur.previous_status == prev.status


def test_touch_only_moves_last_checked(store, clock) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "app")
    clock.advance(hours=3)
    store.touch_application("app")

    app = store.get_application("app")
    assert app.last_checked == clock().isoformat(timespec="seconds")
    assert app.status_history == []


def test_delete_application_resets_applied_flag(store) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "app")
    store.delete_application("app")

    assert store.get_job("1").is_applied is False
    with pytest.raises(NotFoundError):
        store.delete_application("app")


def test_delete_job_cascades_to_application(store) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "app")
    store.delete_job("1")

    assert store.find_job("1") is None
    assert store.find_application("app") is None


def test_mark_job_applied_uses_manual_id(store) -> None:
    store.upsert_job(make_job("1"))
    app = store.mark_job_applied("1", notes="applied on company site")
    assert app.application_id.startswith("manual_")
    assert store.get_job("1").is_applied is True


def test_jobs_to_apply_orders_by_score_and_filters(store, clock) -> None:
    store.upsert_job(make_job("low", match_score=20))
    store.upsert_job(make_job("high", match_score=90))
    store.upsert_job(make_job("mid", match_score=50, company="Blocked Inc"))
    store.upsert_job(make_job("done", match_score=99))
    _apply(store, "done")
    clock.advance(days=-10)
    store.upsert_job(make_job("old", match_score=95))
    clock.advance(days=10)

    picked = store.jobs_to_apply(limit=10, exclude_companies=["blocked inc"])
    assert [j.job_id for j in picked] == ["high", "low"]
    assert [j.job_id for j in store.jobs_to_apply(limit=1)] == ["high"]
    assert store.jobs_to_apply(limit=0) == []


def test_company_upsert_replaces_without_merge(store) -> None:
    store.upsert_company(Company("Acme", industry="Software", size="51-200", specialties=["ml"]))
    store.upsert_company(Company("Acme", size="201-500"))

    acme = store.get_company("Acme")
    assert acme.size == "201-500"
    assert acme.industry is None
    assert acme.specialties == []
    assert len(store.list_companies()) == 1


def test_delete_company_removes_its_recruiters(store) -> None:
    store.upsert_company(Company("Acme"))
    store.upsert_recruiter(Recruiter("Ann", "https://www.linkedin.com/in/ann", company="Acme"))
    store.upsert_recruiter(Recruiter("Bob", "https://www.linkedin.com/in/bob", company="Other"))
    store.delete_company("Acme")

    assert store.list_recruiters("Acme") == []
    assert len(store.list_recruiters()) == 1


def test_companies_needing_research(store, clock) -> None:
    store.upsert_job(make_job("1", company="Fresh"))
    store.upsert_job(make_job("2", company="Known"))
    store.upsert_job(make_job("3", company="Stale"))
    store.upsert_company(Company("Known"))
    clock.advance(days=-40)
    store.upsert_company(Company("Stale"))
    clock.advance(days=40)

    assert sorted(store.companies_needing_research(limit=10, stale_days=30)) == ["Fresh", "Stale"]


def test_prune_stale_jobs_keeps_applied_and_recent(store, clock) -> None:
    clock.advance(days=-45)
    store.upsert_job(make_job("old"))
    store.upsert_job(make_job("old-applied"))
    _apply(store, "old-applied")
    clock.advance(days=45)
    store.upsert_job(make_job("new"))

    assert store.prune_stale_jobs(older_than_days=30) == 1
    assert {j.job_id for j in store.list_jobs()} == {"old-applied", "new"}


def test_compact_status_history_keeps_latest_entries(store, clock) -> None:
    store.upsert_job(make_job("1"))
    store.upsert_job(make_job("2"))
    _apply(store, "1", "old")
    _apply(store, "2", "recent")
    for i in range(8):
        store.record_status_change("old", f"s{i}")
        store.record_status_change("recent", f"s{i}")
    clock.advance(days=61)
    store.touch_application("recent")

    assert store.compact_status_history(older_than_days=60, keep=5) == 1
    old = store.get_application("old")
    assert [h.status for h in old.status_history] == ["s3", "s4", "s5", "s6", "s7"]
    assert old.status == "s7"
    assert len(store.get_application("recent").status_history) == 8


def test_run_log_insert_list_and_prune(store, clock) -> None:
    clock.advance(days=-100)
    store.record_run(RunOutcome("job_scrape", RunStatus.SUCCESS, started_at=clock().isoformat()))
    clock.advance(days=100)
    rid = store.record_run(RunOutcome(
        "auto_apply", RunStatus.ERROR, started_at=clock().isoformat(),
        error_message="verify", error_type="ChallengeRequiredError",
    ))

    assert store.last_run("auto_apply").id == rid
    assert store.list_runs(status="error")[0].error_type == "ChallengeRequiredError"
    assert store.prune_runs(older_than_days=90) == 1
    assert len(store.list_runs()) == 1


def test_filters_and_settings_export_import(store, clock) -> None:
    saved = store.save_filter(SearchFilter("backend", keywords=["python"], locations=["Remote"]))
    store.save_filter(SearchFilter("paused", is_active=False))
    store.mark_filter_used(saved.id)
    store.set_setting("theme", "dark")

    assert store.active_filter().name == "backend"
    payload = store.export_settings()

    store.delete_filter(saved.id)
    store.delete_setting("theme")
    assert store.import_settings(payload) == 3
    assert store.get_setting("theme") == "dark"
    assert sorted(f.name for f in store.list_filters()) == ["backend", "paused"]


def test_application_stats_response_rate(store) -> None:
    for i, status in enumerate(["Applied", "Not viewed", "Rejected", "Interview scheduled"]):
        store.upsert_job(make_job(str(i)))
        _apply(store, str(i), f"a{i}")
        if status != "Applied":
            store.record_status_change(f"a{i}", status)

    stats = store.application_stats()
    assert stats["total"] == 4
    assert stats["response_rate"] == 50.0


def test_daily_stats_counts_today_only(store, clock) -> None:
    store.upsert_job(make_job("1"))
    _apply(store, "1", "app")
    store.record_status_change("app", "Application viewed")
    store.upsert_company(Company("Acme"))
    clock.advance(days=1)
    store.upsert_job(make_job("2"))

    stats = store.daily_stats(clock() - timedelta(days=1))
    assert stats == {
        "new_jobs": 1, "applications": 1, "companies": 1, "runs": 0, "failed_runs": 0, "status_changes": 1,
    }

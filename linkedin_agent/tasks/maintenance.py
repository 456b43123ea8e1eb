"""Nightly housekeeping: report, retention pruning, history compaction."""
from __future__ import annotations

from datetime import timedelta

from linkedin_agent.log import get_logger
from linkedin_agent.models import SearchFilter, TaskKind
from linkedin_agent.report import build_daily_report, write_daily_report
from linkedin_agent.tasks.auto_apply import DAILY_COUNT_SETTING
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)


class MaintenanceTask(ScrapeTask):
    """Runs without the browser session; only the store is touched."""

    kind = TaskKind.MAINTENANCE

    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        s = ctx.settings
        store = ctx.store

        # Fires shortly after midnight, so the report covers the day that just ended.
        report_day = ctx.now() - timedelta(days=1)
        content = build_daily_report(store, report_day)
        write_daily_report(content, s.reports_dir, report_day)

        jobs = store.prune_stale_jobs(older_than_days=s.job_retention_days)
        runs = store.prune_runs(older_than_days=s.log_retention_days)
        compacted = store.compact_status_history(
            older_than_days=s.history_compact_after_days, keep=s.history_keep_entries
        )
        store.set_setting(DAILY_COUNT_SETTING, 0)
        ctx.tally.processed = jobs + runs + compacted
        log.info(
            "Maintenance: removed %d stale jobs, %d old run logs, compacted %d histories",
            jobs, runs, compacted,
        )

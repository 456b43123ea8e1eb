"""Application status tracking."""
from __future__ import annotations

from linkedin_agent.log import get_logger
from linkedin_agent.models import Application, Missing, SearchFilter, TaskKind
from linkedin_agent.scraping import ApplicationsPage
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)

# Statuses after which the platform never changes its answer.
FINAL_STATUSES = ("Rejected", "Hired")


class StatusCheckTask(ScrapeTask):
    kind = TaskKind.STATUS_CHECK

    def __init__(self, pages: ApplicationsPage) -> None:
        self.pages = pages

    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        apps = [a for a in ctx.store.list_applications() if a.status not in FINAL_STATUSES]
        if not apps:
            log.info("No open applications to check")
            return
        with ctx.sessions.lease() as session:
            for app in apps:
                ctx.check()
                self.process_item(ctx, app.application_id, lambda a=app: self._check(ctx, session, a))
                ctx.pace()

    def _check(self, ctx: TaskContext, session, app: Application) -> None:
        job = ctx.store.find_job(app.job_id)
        result = self.pages.read_status(session.page, app, job)
        if isinstance(result, Missing):
            log.debug("No status for %s: %s", app.application_id, result.reason)
            ctx.tally.skipped += 1
            ctx.store.touch_application(app.application_id, now=ctx.now())
            return
        status = result.value
        if status != app.status:
            ctx.store.record_status_change(app.application_id, status, now=ctx.now())
            log.info("Status change for %s: %s -> %s", app.application_id, app.status, status)
        else:
            ctx.store.touch_application(app.application_id, now=ctx.now())
        ctx.tally.processed += 1

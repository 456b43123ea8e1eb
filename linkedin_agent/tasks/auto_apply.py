"""Auto-apply to the best unapplied jobs, within the daily cap."""
from __future__ import annotations

from linkedin_agent.errors import ConflictError, DailyCapReached, ItemError
from linkedin_agent.log import get_logger
from linkedin_agent.models import Application, Job, SearchFilter, TaskKind
from linkedin_agent.scraping import ApplyForm, Availability
from linkedin_agent.tasks.apply_flow import ApplyFlow
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)

DAILY_COUNT_SETTING = "daily_applications_count"
_CAP_HIT = "cap"


class AutoApplyTask(ScrapeTask):
    kind = TaskKind.AUTO_APPLY

    def __init__(self, form: ApplyForm) -> None:
        self.form = form

    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        settings = ctx.settings
        if not settings.auto_apply_enabled:
            log.info("Auto-apply is disabled (AUTO_APPLY_ENABLED=false)")
            return

        cap = settings.max_applications_per_day
        already = ctx.store.count_applications_on(ctx.now())
        if already >= cap:
            log.info("Daily cap reached (%d/%d), nothing to do", already, cap)
            ctx.store.set_setting(DAILY_COUNT_SETTING, already)
            return

        profile = settings.profile
        jobs = ctx.store.jobs_to_apply(
            limit=cap - already,
            min_match_score=float(profile.get("min_match_score") or 0),
            keywords=filters.keywords if filters else None,
            exclude_companies=list(profile.get("exclude_companies") or []),
        )
        if not jobs:
            log.info("No eligible jobs to apply to")
            return
        log.info("Applying to up to %d job(s) (%d/%d used today)", len(jobs), already, cap)

        flow = ApplyFlow(self.form, settings, sleep=ctx.sleep)
        with ctx.sessions.lease() as session:
            for job in jobs:
                ctx.check()
                today = ctx.store.count_applications_on(ctx.now())
                if today >= cap:
                    log.info("Daily cap reached mid-run (%d/%d)", today, cap)
                    break
                result = self.process_item(ctx, job.job_id, lambda j=job: self._apply(ctx, session, flow, j, cap))
                if result == _CAP_HIT:
                    break
                ctx.pace(settings.application_delay_ms, settings.application_delay_ms + 2000)

        ctx.store.set_setting(DAILY_COUNT_SETTING, ctx.store.count_applications_on(ctx.now()))

    def _apply(self, ctx: TaskContext, session, flow: ApplyFlow, job: Job, cap: int) -> str | None:
        availability = self.form.open_job(session.page, job)
        if availability is Availability.ALREADY_APPLIED:
            log.info("Already applied on the platform: %s @ %s", job.title, job.company)
            self._record(ctx, job, "detected", "Detected as already applied", cap=None)
            ctx.tally.skipped += 1
            return None
        if availability is not Availability.EASY_APPLY:
            log.info("Skipping %s @ %s: %s", job.title, job.company, availability.value)
            ctx.tally.skipped += 1
            return None

        result = flow.run(session.page, job)
        if not result.submitted:
            session.screenshot(f"apply_failed_{job.job_id}")
            raise ItemError(result.reason)

        try:
            self._record(ctx, job, "auto", "Submitted via Easy Apply", cap=cap)
        except DailyCapReached as exc:
            # Submitted already; the row must exist even though the cap was overrun.
            log.error("Cap overrun for %s (%s); recording anyway and stopping", job.job_id, exc)
            self._record(ctx, job, "auto", "Submitted via Easy Apply (over daily cap)", cap=None)
            ctx.tally.processed += 1
            return _CAP_HIT
        ctx.tally.processed += 1
        log.info("Applied: %s @ %s", job.title, job.company)
        return None

    def _record(self, ctx: TaskContext, job: Job, prefix: str, notes: str, *, cap: int | None) -> None:
        now = ctx.now()
        app = Application(
            job_id=job.job_id,
            application_id=f"{prefix}_{int(now.timestamp() * 1000)}_{job.job_id}",
            notes=notes,
        )
        try:
            ctx.store.create_application(app, daily_cap=cap, now=now)
        except DailyCapReached:
            raise
        except ConflictError as exc:
            raise ItemError(str(exc)) from exc

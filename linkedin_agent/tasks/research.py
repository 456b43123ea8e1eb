"""Company research and recruiter discovery."""
from __future__ import annotations

from linkedin_agent.log import get_logger
from linkedin_agent.models import Missing, SearchFilter, TaskKind
from linkedin_agent.scraping import CompanyDirectory
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)


class ResearchTask(ScrapeTask):
    kind = TaskKind.RESEARCH

    def __init__(self, directory: CompanyDirectory) -> None:
        self.directory = directory

    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        names = ctx.store.companies_needing_research(
            limit=ctx.settings.research_batch_size,
            stale_days=ctx.settings.research_stale_days,
        )
        if not names:
            log.info("All companies are up to date")
            return
        log.info("Researching %d compan%s", len(names), "y" if len(names) == 1 else "ies")
        with ctx.sessions.lease() as session:
            for name in names:
                ctx.check()
                self.process_item(ctx, name, lambda n=name: self._research(ctx, session, n))
                ctx.pace(3000, 6000)

    def _research(self, ctx: TaskContext, session, name: str) -> None:
        result = self.directory.fetch_company(session.page, name)
        if isinstance(result, Missing):
            log.info("Skipping %s: %s", name, result.reason)
            ctx.tally.skipped += 1
            return
        company = result.value
        company.company_name = name
        ctx.store.upsert_company(company, now=ctx.now())
        ctx.tally.processed += 1

        limit = ctx.settings.recruiters_per_company
        if limit <= 0:
            return
        for recruiter in self.directory.find_recruiters(session.page, name, limit):
            recruiter.company = name
            self.process_item(
                ctx, recruiter.profile_url, lambda r=recruiter: ctx.store.upsert_recruiter(r, now=ctx.now())
            )

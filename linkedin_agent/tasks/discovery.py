"""Job discovery: walk the search results and upsert every job found."""
from __future__ import annotations

from linkedin_agent.log import get_logger
from linkedin_agent.models import Job, Missing, SearchFilter, TaskKind
from linkedin_agent.scraping import JobBoard
from linkedin_agent.tasks.base import ScrapeTask, TaskContext

log = get_logger(__name__)


def score_job(job: Job, keywords: list[str]) -> tuple[float, list[str]]:
    """Share of search keywords present in the title or description, as 0-100."""
    wanted = [k.strip().lower() for k in keywords if k.strip()]
    if not wanted:
        return 0.0, []
    text = f"{job.title} {job.description}".lower()
    matched = [k for k in wanted if k in text]
    return round(len(matched) / len(wanted) * 100, 1), matched


class DiscoveryTask(ScrapeTask):
    kind = TaskKind.DISCOVERY

    def __init__(self, board: JobBoard) -> None:
        self.board = board

    def resolve_filter(self, ctx: TaskContext, filters: SearchFilter | None) -> SearchFilter:
        """Explicit filter, else the active stored one, else the env defaults."""
        if filters is not None:
            return filters
        stored = ctx.store.active_filter()
        if stored is not None:
            ctx.store.mark_filter_used(stored.id, now=ctx.now())
            log.info("Using stored search filter %r", stored.name)
            return stored
        s = ctx.settings
        return SearchFilter(
            name="default",
            keywords=list(s.search_keywords),
            locations=list(s.search_locations),
            job_types=list(s.search_job_types),
        )

    def execute(self, ctx: TaskContext, filters: SearchFilter | None) -> None:
        search = self.resolve_filter(ctx, filters)
        target = ctx.settings.max_jobs_per_scrape
        max_empty = max(1, ctx.settings.max_empty_batches)
        max_pages = max(1, ctx.settings.max_scrape_pages)

        seen: set[str] = set()
        created = 0
        empty_streak = 0
        batches = 0
        stop_reason = "board exhausted"

        with ctx.sessions.lease() as session:
            self.board.open_search(session.page, search)
            while True:
                ctx.check()
                batch = self.board.fetch_batch(session.page)
                batches += 1
                fresh = 0
                for result in batch:
                    if len(seen) >= target:
                        break
                    if isinstance(result, Missing):
                        ctx.tally.skipped += 1
                        log.debug("Skipping unreadable card: %s", result.reason)
                        continue
                    job = result.value
                    if job.job_id in seen:
                        continue
                    seen.add(job.job_id)
                    fresh += 1
                    if self.process_item(ctx, job.job_id, lambda j=job: self._store(ctx, j, search)):
                        created += 1

                empty_streak = 0 if fresh else empty_streak + 1
                if len(seen) >= target:
                    stop_reason = f"target of {target} reached"
                    break
                if empty_streak >= max_empty:
                    stop_reason = f"{empty_streak} consecutive batches without new jobs"
                    break
                if batches >= max_pages:
                    stop_reason = f"page ceiling of {max_pages} reached"
                    break
                ctx.pace()
                if not self.board.advance(session.page):
                    break

        log.info(
            "Discovery stopped (%s): %d unique jobs, %d new, %d batches",
            stop_reason, len(seen), created, batches,
        )

    def _store(self, ctx: TaskContext, job: Job, search: SearchFilter) -> bool:
        job.match_score, job.keywords_matched = score_job(job, search.keywords)
        job.validate()
        created = ctx.store.upsert_job(job, now=ctx.now())
        ctx.tally.processed += 1
        if created:
            log.info("New job: %s @ %s (match %.0f%%)", job.title, job.company, job.match_score)
        return created

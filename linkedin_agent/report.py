"""Daily markdown report of discovery, applications and task health."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

from linkedin_agent.log import get_logger
from linkedin_agent.models import RunOutcome
from linkedin_agent.store import Database

log = get_logger(__name__)


def _clip(text: str, n: int) -> str:
    return text[:n] + ("…" if len(text) > n else "")


def build_daily_report(store: Database, day: datetime) -> str:
    date = day.strftime("%Y-%m-%d")
    stats = store.daily_stats(day)
    app_stats = store.application_stats()
    lines: list[str] = [f"# LinkedIn Agent Report: {date}", ""]

    lines.append(
        f"**{stats['new_jobs']}** new jobs | **{stats['applications']}** applications | "
        f"**{stats['status_changes']}** status changes | **{stats['companies']}** companies researched"
    )
    lines.append("")

    new_jobs = store.jobs_scraped_on(day)
    if new_jobs:
        lines.append("## New Jobs")
        lines.append("")
        lines.append("| # | Role | Company | Location | Match | Applied |")
        lines.append("|--:|------|---------|----------|------:|---------|")
        for i, j in enumerate(new_jobs[:20], 1):
            applied = "yes" if j.is_applied else ""
            lines.append(
                f"| {i} | [{_clip(j.title, 40)}]({j.url}) | {_clip(j.company, 22)} | "
                f"{_clip(j.location.split(',')[0], 18)} | {j.match_score:.0f}% | {applied} |"
            )
        lines.append("")

    if app_stats["total"]:
        lines.append("## Applications")
        lines.append("")
        lines.append(f"- **Total:** {app_stats['total']}")
        lines.append(f"- **Response rate:** {app_stats['response_rate']:.1f}%")
        for status, n in sorted(app_stats["by_status"].items(), key=lambda kv: -kv[1]):
            lines.append(f"- {status}: {n}")
        lines.append("")

    runs = [r for r in store.list_runs(limit=500) if (r.started_at or "").startswith(date)]
    if runs:
        lines.append("## Task Runs")
        lines.append("")
        lines.append("| Task | Runs | Failed | Items | Errors |")
        lines.append("|------|-----:|-------:|------:|-------:|")
        by_kind: dict[str, list[RunOutcome]] = {}
        for r in runs:
            by_kind.setdefault(r.kind, []).append(r)
        for kind, rs in sorted(by_kind.items()):
            failed = sum(1 for r in rs if not r.ok)
            lines.append(
                f"| {kind} | {len(rs)} | {failed} | {sum(r.items_processed for r in rs)} | "
                f"{sum(r.errors_count for r in rs)} |"
            )
        lines.append("")
        needs_human = [r for r in runs if r.error_type == "ChallengeRequiredError"]
        if needs_human:
            lines.append(f"> **Needs attention:** {len(needs_human)} run(s) stopped on a login verification challenge.")
            lines.append("> Run once with HEADLESS_MODE=false to clear it.")
            lines.append("")

    log.info("Built daily report for %s: %d new jobs, %d applications", date, stats["new_jobs"], stats["applications"])
    return "\n".join(lines)


def write_daily_report(content: str, reports_dir: str | Path, day: datetime) -> Path:
    out = Path(reports_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"daily_{day.strftime('%Y-%m-%d')}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written: %s", path)
    return path

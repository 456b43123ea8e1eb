"""LinkedIn "My jobs / Applied" view."""
from __future__ import annotations

from typing import Any

from linkedin_agent.linkedin.dom import BASE_URL, navigate, text_of
from linkedin_agent.log import get_logger
from linkedin_agent.models import APPLICATION_STATUSES, Application, Found, Job, Lookup, Missing
from linkedin_agent.scraping import ApplicationsPage

log = get_logger(__name__)

APPLIED_URL = f"{BASE_URL}/my-items/saved-jobs/?cardType=APPLIED"

_STATUS_KEYWORDS = [
    ("hired", "Hired"),
    ("interview", "Interview scheduled"),
    ("shortlist", "Shortlisted"),
    ("no longer", "Rejected"),
    ("not selected", "Rejected"),
    ("rejected", "Rejected"),
    ("not viewed", "Not viewed"),
    ("viewed", "Application viewed"),
    ("submitted", "Application submitted"),
    ("applied", "Applied"),
]


def normalize_status(raw: str) -> str | None:
    text = raw.lower()
    for needle, status in _STATUS_KEYWORDS:
        if needle in text:
            return status
    return None


class LinkedInApplicationsPage(ApplicationsPage):
    def __init__(self) -> None:
        self._cards: dict[str, str] | None = None

    def _load(self, page: Any) -> dict[str, str]:
        navigate(page, APPLIED_URL)
        page.wait_for_timeout(2000)
        cards: dict[str, str] = {}
        items = page.locator(".reusable-search__result-container, .entity-result")
        for i in range(items.count()):
            item = items.nth(i)
            href = item.locator("a[href*='/jobs/view/']")
            if href.count() == 0:
                continue
            link = href.first.get_attribute("href") or ""
            status = text_of(item, ".application-status, .job-application-status, .entity-result__insights, .reusable-search-simple-insight__text")
            cards[link.split("?")[0]] = status
        log.info("Applied-jobs page lists %d cards", len(cards))
        return cards

    def read_status(self, page: Any, application: Application, job: Job | None) -> Lookup[str]:
        if self._cards is None or not page.url.startswith(APPLIED_URL.split("?")[0]):
            self._cards = self._load(page)
        if job is None:
            return Missing("job record missing")
        for link, raw in self._cards.items():
            if f"/jobs/view/{job.job_id}" in link or (job.url and job.url in link):
                status = normalize_status(raw)
                if status in APPLICATION_STATUSES:
                    return Found(status)
                return Missing(f"unrecognised status text {raw!r}")
        return Missing("not listed on applied-jobs page")

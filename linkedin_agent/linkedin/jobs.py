"""LinkedIn job search results: card extraction and pagination."""
from __future__ import annotations

import time
from typing import Any
from urllib.parse import urlencode

from linkedin_agent.linkedin.dom import BASE_URL, absolute, attr_of, click_first_visible, navigate, text_of
from linkedin_agent.log import get_logger
from linkedin_agent.models import Found, Job, Lookup, Missing, SearchFilter, generate_job_id
from linkedin_agent.scraping import JobBoard

log = get_logger(__name__)

_CARD_SELECTORS = ".job-card-container, .jobs-search-results__list-item, .jobs-search-result-item"
_JOB_TYPE_CODES = {"full-time": "F", "part-time": "P", "contract": "C", "temporary": "T", "internship": "I"}
_EXPERIENCE_CODES = {"internship": "1", "entry": "2", "associate": "3", "mid-senior": "4", "director": "5", "executive": "6"}


def search_url(search: SearchFilter) -> str:
    params: dict[str, str] = {"f_TPR": "r86400", "sortBy": "DD"}
    if search.keywords:
        params["keywords"] = " OR ".join(search.keywords)
    if search.locations:
        params["location"] = search.locations[0]
    codes = [_JOB_TYPE_CODES[t.lower()] for t in search.job_types if t.lower() in _JOB_TYPE_CODES]
    if codes:
        params["f_JT"] = ",".join(codes)
    levels = [_EXPERIENCE_CODES[e.lower()] for e in search.experience_levels if e.lower() in _EXPERIENCE_CODES]
    if levels:
        params["f_E"] = ",".join(levels)
    return f"{BASE_URL}/jobs/search/?{urlencode(params)}"


class LinkedInJobBoard(JobBoard):
    def __init__(self) -> None:
        self._read: set[str] = set()

    def open_search(self, page: Any, search: SearchFilter) -> None:
        self._read.clear()
        url = search_url(search)
        log.info("Opening job search: %s", url)
        navigate(page, url)
        page.wait_for_selector(_CARD_SELECTORS, timeout=15_000)

    def fetch_batch(self, page: Any) -> list[Lookup[Job]]:
        results: list[Lookup[Job]] = []
        cards = page.locator(_CARD_SELECTORS)
        for i in range(cards.count()):
            card = cards.nth(i)
            href = absolute(attr_of(card, "a[href*='/jobs/view/']", "href"))
            key = attr_of(card, "[data-job-id]", "data-job-id") or href
            if not key or key in self._read:
                continue
            self._read.add(key)
            results.append(self._read_card(page, card, href))
        return results

    def _read_card(self, page: Any, card: Any, href: str) -> Lookup[Job]:
        title = text_of(card, ".job-card-list__title, .job-card-container__link, a[href*='/jobs/view/']")
        company = text_of(card, ".job-card-container__primary-description, .artdeco-entity-lockup__subtitle")
        if not href or not title:
            return Missing("card without link or title")
        location = text_of(card, ".job-card-container__metadata-item, .artdeco-entity-lockup__caption")

        card.click()
        time.sleep(1.5)
        detail = page.locator(".jobs-search__job-details, .job-view-layout")
        description = text_of(detail, ".jobs-description, .jobs-box__html-content")
        return Found(Job(
            job_id=generate_job_id(href, title, company),
            title=title.split("\n")[0],
            company=company or text_of(detail, ".job-details-jobs-unified-top-card__company-name"),
            url=href,
            location=location,
            job_type=text_of(detail, '[data-test-id="job-type"]'),
            description=description,
            requirements=description[:2000],
            posted_date=text_of(detail, ".jobs-unified-top-card__posted-date, .tvm__text--positive") or None,
            salary_range=text_of(detail, ".jobs-unified-top-card__salary, .job-details-jobs-unified-top-card__job-insight") or None,
            experience_level=text_of(detail, '[data-test-id="experience-level"]') or None,
        ))

    def advance(self, page: Any) -> bool:
        before = page.locator(_CARD_SELECTORS).count()
        page.locator(".jobs-search-results-list, .scaffold-layout__list").first.evaluate(
            "el => el.scrollTo(0, el.scrollHeight)"
        )
        time.sleep(2)
        if page.locator(_CARD_SELECTORS).count() > before:
            return True
        if click_first_visible(page, ['button[aria-label*="next" i]', ".jobs-search-pagination__button--next"]):
            page.wait_for_load_state("domcontentloaded")
            time.sleep(2)
            return True
        return False

"""LinkedIn company pages and recruiter people-search."""
from __future__ import annotations

import re
import time
from typing import Any
from urllib.parse import quote_plus

from linkedin_agent.linkedin.dom import BASE_URL, absolute, attr_of, navigate, text_of
from linkedin_agent.log import get_logger
from linkedin_agent.models import Company, Found, Lookup, Missing, Recruiter
from linkedin_agent.scraping import CompanyDirectory

log = get_logger(__name__)


def _first_int(text: str) -> int | None:
    m = re.search(r"\d[\d,]*", text or "")
    return int(m.group().replace(",", "")) if m else None


class LinkedInCompanyDirectory(CompanyDirectory):
    def _company_url(self, page: Any, name: str) -> str:
        navigate(page, f"{BASE_URL}/search/results/companies/?keywords={quote_plus(name)}")
        time.sleep(2)
        return absolute(attr_of(page, ".entity-result__title-text a, .search-result__result-link", "href"))

    def fetch_company(self, page: Any, name: str) -> Lookup[Company]:
        url = self._company_url(page, name)
        if "/company/" not in url:
            return Missing(f"no company page found for {name!r}")
        about = url.rstrip("/") + "/about/"
        navigate(page, about)
        time.sleep(2)
        specialties = text_of(page, ".org-about-company-module__specialities, dd:below(dt:has-text('Specialties'))")
        size_text = text_of(page, ".org-about-company-module__company-size-definition, dd:below(dt:has-text('Company size'))")
        return Found(Company(
            company_name=name,
            industry=text_of(page, ".org-top-card-summary__industry, .org-top-card-summary-info-list__info-item") or None,
            size=size_text or None,
            location=text_of(page, ".org-top-card-summary__headquarter, dd:below(dt:has-text('Headquarters'))") or None,
            website=attr_of(page, "a[href^='http']:not([href*='linkedin.com'])", "href") or None,
            description=text_of(page, ".org-about-company-module__description, .org-about-us-organization-description__text") or None,
            employees_count=_first_int(text_of(page, ".org-about-company-module__company-staff-count-range") or size_text),
            founded_year=_first_int(text_of(page, ".org-about-company-module__founded, dd:below(dt:has-text('Founded'))")),
            specialties=[s.strip() for s in specialties.split(",") if s.strip()],
        ))

    def find_recruiters(self, page: Any, company: str, limit: int) -> list[Recruiter]:
        if limit <= 0:
            return []
        navigate(page, f"{BASE_URL}/search/results/people/?keywords={quote_plus('recruiter ' + company)}")
        time.sleep(2)
        found: list[Recruiter] = []
        cards = page.locator(".entity-result, .search-result__wrapper")
        for i in range(min(cards.count(), limit)):
            card = cards.nth(i)
            link = absolute(attr_of(card, ".entity-result__title-text a, .actor-name", "href"))
            name = text_of(card, ".entity-result__title-text a span[aria-hidden='true'], .actor-name")
            if "/in/" not in link or not name:
                continue
            found.append(Recruiter(
                name=name,
                profile_url=link,
                title=text_of(card, ".entity-result__primary-subtitle, .subline-level-1") or None,
                company=company,
                location=text_of(card, ".entity-result__secondary-subtitle, .subline-level-2") or None,
                connection_degree=text_of(card, ".entity-result__badge-text, .dist-value") or None,
                mutual_connections=_first_int(text_of(card, ".entity-result__simple-insight-text")) or 0,
            ))
        log.info("Found %d recruiter profile(s) for %s", len(found), company)
        return found

"""In-memory stand-ins for the browser and the LinkedIn page adapters."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

from linkedin_agent.models import Application, Company, Found, Job, Missing, Recruiter, SearchFilter
from linkedin_agent.scraping import (
    ApplicationsPage,
    ApplyForm,
    Availability,
    CompanyDirectory,
    JobBoard,
    LoginPage,
    Question,
)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeBrowser:
    def __init__(self) -> None:
        self.alive = False
        self.launches = 0
        self.relaunches = 0
        self.saved_cookies = 0
        self.closed = 0
        self.fresh_starts = 0
        self.page = object()

    def launch(self, *, fresh_start: bool = False) -> None:
        self.launches += 1
        self.fresh_starts += int(fresh_start)
        self.alive = True

    def relaunch(self) -> None:
        self.relaunches += 1
        self.alive = True

    def is_alive(self) -> bool:
        return self.alive

    def save_cookies(self) -> None:
        self.saved_cookies += 1

    def screenshot(self, label: str) -> None:
        return None

    def close(self, *, save: bool = True) -> None:
        self.closed += 1
        self.alive = False


class FakeLogin(LoginPage):
    """Scriptable login page.

    ``session_valid``: stored cookies already authenticate.
    ``fail_times``: how many credential submissions raise before one works.
    ``challenge``: challenge kind raised after the first submission.
    """

    def __init__(self, *, session_valid: bool = False, fail_times: int = 0, challenge: str | None = None) -> None:
        self.session_valid = session_valid
        self.fail_times = fail_times
        self.challenge = challenge
        self.logged_in = session_valid
        self.home_visits = 0
        self.submissions = 0
        self.quick_checks = 0
        self.codes: list[str] = []

    def open_home(self, page: Any) -> None:
        self.home_visits += 1

    def is_logged_in(self, page: Any) -> bool:
        return self.logged_in

    def still_logged_in(self, page: Any) -> bool:
        self.quick_checks += 1
        return self.logged_in

    def open_login(self, page: Any) -> None:
        pass

    def submit_credentials(self, page: Any, email: str, password: str) -> None:
        self.submissions += 1
        if self.submissions <= self.fail_times:
            raise RuntimeError("login form timed out")
        if self.challenge is None:
            self.logged_in = True

    def detect_challenge(self, page: Any) -> str | None:
        return self.challenge if not self.logged_in else None

    def submit_verification_code(self, page: Any, code: str) -> None:
        self.codes.append(code)
        self.logged_in = True
        self.challenge = None


def make_job(job_id: str, **overrides: Any) -> Job:
    fields: dict[str, Any] = {
        "job_id": job_id,
        "title": f"Python Developer {job_id}",
        "company": "Acme",
        "url": f"https://www.linkedin.com/jobs/view/{job_id}/",
        "location": "Remote",
        "description": "Python and SQL backend work",
    }
    fields.update(overrides)
    return Job(**fields)


class FakeBoard(JobBoard):
    def __init__(self, batches: list[list[Any]], *, endless: bool = False) -> None:
        self.batches = batches
        self.endless = endless
        self.index = 0
        self.opened_with: SearchFilter | None = None
        self.fetches = 0

    def open_search(self, page: Any, search: SearchFilter) -> None:
        self.opened_with = search
        self.index = 0

    def fetch_batch(self, page: Any) -> list[Any]:
        self.fetches += 1
        if self.index < len(self.batches):
            return list(self.batches[self.index])
        return []

    def advance(self, page: Any) -> bool:
        self.index += 1
        return self.endless or self.index < len(self.batches)


class FakeApplicationsPage(ApplicationsPage):
    def __init__(self, statuses: dict[str, str]) -> None:
        self.statuses = statuses

    def read_status(self, page: Any, application: Application, job: Job | None):
        if application.job_id in self.statuses:
            return Found(self.statuses[application.job_id])
        return Missing("not listed")


class FakeDirectory(CompanyDirectory):
    def __init__(self, companies: dict[str, Company], recruiters: dict[str, list[Recruiter]] | None = None) -> None:
        self.companies = companies
        self.recruiters = recruiters or {}

    def fetch_company(self, page: Any, name: str):
        if name in self.companies:
            return Found(self.companies[name])
        return Missing("no company page")

    def find_recruiters(self, page: Any, company: str, limit: int) -> list[Recruiter]:
        return self.recruiters.get(company, [])[:limit]


class FakeForm(ApplyForm):
    """Easy Apply modal that walks through a fixed list of page texts."""

    def __init__(
        self,
        pages: list[str] | None = None,
        *,
        availability: dict[str, Availability] | None = None,
        submit_ok: bool = True,
        flaky_next: int = 0,
        submit_raises: bool = False,
    ) -> None:
        self.pages = pages if pages is not None else [
            "contact info phone", "upload resume", "additional questions", "review your application",
        ]
        self.availability = availability or {}
        self.submit_ok = submit_ok
        self.flaky_next = flaky_next
        self.submit_raises = submit_raises
        self.position = 0
        self.opened: list[str] = []
        self.submitted: list[str] = []
        self.contact: tuple[str, str] | None = None
        self.cover_letters: list[str] = []
        self.answers: list[tuple[str, str]] = []
        self.dismissed = 0
        self._current: Job | None = None

    def open_job(self, page: Any, job: Job) -> Availability:
        self.opened.append(job.job_id)
        self._current = job
        return self.availability.get(job.job_id, Availability.EASY_APPLY)

    def start(self, page: Any) -> bool:
        self.position = 0
        return True

    def modal_text(self, page: Any) -> str:
        return self.pages[self.position] if self.position < len(self.pages) else ""

    def can_submit(self, page: Any) -> bool:
        return self.position == len(self.pages) - 1 and "review" in self.modal_text(page)

    def fill_contact(self, page: Any, phone: str, address: str) -> None:
        self.contact = (phone, address)

    def upload_resume(self, page: Any, path: str) -> bool:
        return True

    def fill_cover_letter(self, page: Any, text: str) -> bool:
        self.cover_letters.append(text)
        return True

    def answer_questions(self, page: Any, answer: Callable[[Question], str]) -> int:
        for label in ("How many years of Python experience do you have?", "Do you require visa sponsorship?"):
            self.answers.append((label, answer(Question(label, "text"))))
        return 2

    def next_step(self, page: Any) -> bool:
        if self.flaky_next > 0:
            self.flaky_next -= 1
            raise RuntimeError("element detached")
        if self.position + 1 >= len(self.pages):
            return False
        self.position += 1
        return True

    def submit(self, page: Any) -> bool:
        if self.submit_ok and self._current is not None:
            self.submitted.append(self._current.job_id)
        if self.submit_raises:
            raise RuntimeError("element detached after click")
        return self.submit_ok

    def dismiss(self, page: Any) -> None:
        self.dismissed += 1

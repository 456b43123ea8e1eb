"""
Interfaces between the tasks and the platform's pages.

Each adapter wraps the DOM of one page family and returns typed results:
``Found(value)`` when the thing was extracted, ``Missing(reason)`` when it is
simply not there. Exceptions are reserved for genuine failures (navigation
errors, a dead browser).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from linkedin_agent.models import Application, Company, Job, Lookup, Recruiter, SearchFilter


class LoginPage(ABC):
    """Platform login / home page."""

    @abstractmethod
    def open_home(self, page: Any) -> None:
        ...

    @abstractmethod
    def is_logged_in(self, page: Any) -> bool:
        ...

    @abstractmethod
    def still_logged_in(self, page: Any) -> bool:
        """Cheap check of the current page, without navigating."""

    @abstractmethod
    def open_login(self, page: Any) -> None:
        ...

    @abstractmethod
    def submit_credentials(self, page: Any, email: str, password: str) -> None:
        ...

    @abstractmethod
    def detect_challenge(self, page: Any) -> str | None:
        """Kind of verification the platform is asking for, or None."""

    @abstractmethod
    def submit_verification_code(self, page: Any, code: str) -> None:
        ...


class JobBoard(ABC):
    """Paginated / infinitely scrolling job search results."""

    @abstractmethod
    def open_search(self, page: Any, search: SearchFilter) -> None:
        ...

    @abstractmethod
    def fetch_batch(self, page: Any) -> list[Lookup[Job]]:
        """Cards currently rendered; a card that cannot be read is Missing."""

    @abstractmethod
    def advance(self, page: Any) -> bool:
        """Scroll or paginate; False when the board has no more results."""


class ApplicationsPage(ABC):
    """The user's "applied jobs" view."""

    @abstractmethod
    def read_status(self, page: Any, application: Application, job: Job | None) -> Lookup[str]:
        ...


class CompanyDirectory(ABC):
    """Company profile pages and people search."""

    @abstractmethod
    def fetch_company(self, page: Any, name: str) -> Lookup[Company]:
        ...

    @abstractmethod
    def find_recruiters(self, page: Any, company: str, limit: int) -> list[Recruiter]:
        ...


class Availability(str, Enum):
    EASY_APPLY = "easy_apply"
    EXTERNAL = "external"
    EXPIRED = "expired"
    ALREADY_APPLIED = "already_applied"
    UNAVAILABLE = "unavailable"


@dataclass
class Question:
    label: str
    kind: str  # "text", "select", "radio"
    options: tuple[str, ...] = ()


class ApplyForm(ABC):
    """Job detail page plus the Easy Apply modal."""

    @abstractmethod
    def open_job(self, page: Any, job: Job) -> Availability:
        ...

    @abstractmethod
    def start(self, page: Any) -> bool:
        """Open the Easy Apply modal."""

    @abstractmethod
    def modal_text(self, page: Any) -> str:
        ...

    @abstractmethod
    def can_submit(self, page: Any) -> bool:
        ...

    @abstractmethod
    def fill_contact(self, page: Any, phone: str, address: str) -> None:
        ...

    @abstractmethod
    def upload_resume(self, page: Any, path: str) -> bool:
        ...

    @abstractmethod
    def fill_cover_letter(self, page: Any, text: str) -> bool:
        ...

    @abstractmethod
    def answer_questions(self, page: Any, answer: Callable[[Question], str]) -> int:
        """Fill every visible screening question; returns how many were answered."""

    @abstractmethod
    def next_step(self, page: Any) -> bool:
        """Click Next / Review; False when neither is present."""

    @abstractmethod
    def submit(self, page: Any) -> bool:
        ...

    @abstractmethod
    def dismiss(self, page: Any) -> None:
        ...

"""Data models for jobs, applications, companies and run outcomes."""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union

from linkedin_agent.errors import UnknownTaskError, ValidationError

T = TypeVar("T")

_JOB_URL_ID = re.compile(r"/jobs/view/(\d+)")

APPLICATION_STATUSES = (
    "Applied",
    "Application submitted",
    "Application viewed",
    "Not viewed",
    "Shortlisted",
    "Interview scheduled",
    "Rejected",
    "Hired",
)
# Statuses that do not count as a response from the employer.
NO_RESPONSE_STATUSES = ("Applied", "Not viewed")


class TaskKind(str, Enum):
    DISCOVERY = "job_scrape"
    STATUS_CHECK = "application_check"
    RESEARCH = "company_scrape"
    AUTO_APPLY = "auto_apply"
    MAINTENANCE = "maintenance"

    @classmethod
    def parse(cls, value: "str | TaskKind") -> "TaskKind":
        if isinstance(value, TaskKind):
            return value
        for kind in cls:
            if value in (kind.value, kind.name.lower()):
                return kind
        raise UnknownTaskError(str(value))


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


def generate_job_id(url: str, title: str = "", company: str = "") -> str:
    """Platform id from the job URL when present, otherwise a stable hash."""
    m = _JOB_URL_ID.search(url or "")
    if m:
        return m.group(1)
    raw = f"{url}|{title.strip().lower()}|{company.strip().lower()}"
    return "h" + hashlib.sha256(raw.encode()).hexdigest()[:12]


@dataclass
class Job:
    job_id: str
    title: str
    company: str
    url: str
    location: str = ""
    job_type: str = ""
    description: str = ""
    requirements: str = ""
    posted_date: str | None = None
    salary_range: str | None = None
    experience_level: str | None = None
    match_score: float = 0.0
    keywords_matched: list[str] = field(default_factory=list)
    is_applied: bool = False
    scraped_at: str | None = None

    def validate(self) -> None:
        missing = [name for name in ("job_id", "title", "company", "url") if not (getattr(self, name) or "").strip()]
        if missing:
            raise ValidationError(f"Job missing {', '.join(missing)}: {self.url or self.title!r}")
        if not 0 <= self.match_score <= 100:
            raise ValidationError(f"Job {self.job_id} match_score out of range: {self.match_score}")


@dataclass
class StatusChange:
    status: str
    timestamp: str
    previous_status: str | None = None

    def to_dict(self) -> dict:
        return {"status": self.status, "timestamp": self.timestamp, "previousStatus": self.previous_status}

    @classmethod
    def from_dict(cls, data: dict) -> "StatusChange":
        return cls(
            status=data.get("status", ""),
            timestamp=data.get("timestamp", ""),
            previous_status=data.get("previousStatus"),
        )


@dataclass
class Application:
    job_id: str
    application_id: str
    status: str = "Applied"
    applied_at: str | None = None
    last_checked: str | None = None
    status_history: list[StatusChange] = field(default_factory=list)
    recruiter_contact: str | None = None
    notes: str | None = None
    id: int | None = None


@dataclass
class Company:
    company_name: str
    industry: str | None = None
    size: str | None = None
    location: str | None = None
    website: str | None = None
    description: str | None = None
    employees_count: int | None = None
    founded_year: int | None = None
    specialties: list[str] = field(default_factory=list)
    scraped_at: str | None = None

    def validate(self) -> None:
        if not self.company_name.strip():
            raise ValidationError("Company without a name")


@dataclass
class Recruiter:
    name: str
    profile_url: str
    title: str | None = None
    company: str | None = None
    email: str | None = None
    phone: str | None = None
    location: str | None = None
    connection_degree: str | None = None
    mutual_connections: int = 0
    scraped_at: str | None = None

    def validate(self) -> None:
        if not self.profile_url.strip() or not self.name.strip():
            raise ValidationError(f"Recruiter missing name or profile url: {self.profile_url!r}")


@dataclass
class SearchFilter:
    name: str
    keywords: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    job_types: list[str] = field(default_factory=list)
    experience_levels: list[str] = field(default_factory=list)
    salary_min: int | None = None
    salary_max: int | None = None
    is_active: bool = True
    created_at: str | None = None
    last_used: str | None = None
    id: int | None = None


@dataclass
class RunOutcome:
    kind: str
    status: RunStatus
    items_processed: int = 0
    errors_count: int = 0
    duration_ms: int = 0
    started_at: str | None = None
    completed_at: str | None = None
    error_message: str | None = None
    error_type: str | None = None
    trigger: str = "schedule"
    id: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is not RunStatus.ERROR


# -- adapter results --------------------------------------------------------

@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class Missing:
    reason: str


Lookup = Union[Found[T], Missing]

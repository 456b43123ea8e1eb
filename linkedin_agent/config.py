"""Load env settings and the YAML apply profile."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from linkedin_agent.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
PROFILE_PATH: Path = CONFIG_DIR / "profile.yaml"
REPORTS_DIR: Path = ROOT_DIR / "reports"
DATA_DIR: Path = ROOT_DIR / "data"

DEFAULT_ANSWERS: dict[str, str] = {
    "experience": "3",
    "work_authorization": "Yes",
    "sponsorship": "No",
    "relocation": "Yes",
    "salary": "60000",
    "start_date": "2 weeks",
    "general": "Yes",
}

DEFAULT_COVER_LETTER = (
    "Dear Hiring Manager,\n\n"
    "I am excited to apply for the {position} role at {company} in {location}. "
    "My experience aligns closely with what your team is looking for, and I would "
    "welcome the chance to contribute.\n\n"
    "Thank you for your consideration.\n\n{date}"
)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def get_bool(key: str, default: bool = False) -> bool:
    raw = get_env(key)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def get_int(key: str, default: int) -> int:
    raw = get_env(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring non-integer %s=%r, using %d", key, raw, default)
        return default


def get_list(key: str) -> list[str]:
    return [part.strip() for part in get_env(key).split(",") if part.strip()]


@dataclass
class Settings:
    linkedin_email: str = ""
    linkedin_password: str = ""
    headless: bool = True
    fresh_start: bool = False
    database_path: str = str(DATA_DIR / "linkedin_automation.db")
    cookies_path: str = str(DATA_DIR / "cookies.json")
    screenshots_dir: str = str(DATA_DIR / "screenshots")
    reports_dir: str = str(REPORTS_DIR)
    browser_timeout_ms: int = 30_000

    scrape_interval_minutes: int = 10
    track_interval_minutes: int = 30
    company_interval_minutes: int = 120
    auto_apply_interval_minutes: int = 60
    maintenance_time: str = "02:00"

    auto_apply_enabled: bool = False
    max_applications_per_day: int = 20
    application_delay_ms: int = 5000
    item_delay_min_ms: int = 2000
    item_delay_max_ms: int = 4000

    max_jobs_per_scrape: int = 50
    max_empty_batches: int = 3
    max_scrape_pages: int = 25
    search_keywords: list[str] = field(default_factory=list)
    search_locations: list[str] = field(default_factory=list)
    search_job_types: list[str] = field(default_factory=list)

    business_hours_only: bool = True
    business_hours_start: int = 9
    business_hours_end: int = 17

    job_retention_days: int = 30
    log_retention_days: int = 90
    history_compact_after_days: int = 60
    history_keep_entries: int = 5
    research_batch_size: int = 20
    research_stale_days: int = 30
    recruiters_per_company: int = 5

    login_max_attempts: int = 3
    login_backoff_seconds: float = 10.0
    task_timeout_minutes: int = 45
    drain_timeout_seconds: int = 60

    profile: dict[str, Any] = field(default_factory=dict)

    def in_business_hours(self, hour: int) -> bool:
        return self.business_hours_start <= hour <= self.business_hours_end

    @property
    def answers(self) -> dict[str, str]:
        merged = dict(DEFAULT_ANSWERS)
        merged.update({k: str(v) for k, v in (self.profile.get("answers") or {}).items()})
        return merged

    @property
    def cover_letter_template(self) -> str:
        return self.profile.get("cover_letter_template") or DEFAULT_COVER_LETTER


def load_profile(path: Path = PROFILE_PATH) -> dict[str, Any]:
    """Read the apply profile; an absent file means built-in defaults."""
    if not path.exists():
        log.info("No profile at %s, using defaults", path)
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Profile %s is not a mapping, ignoring it", path)
        return {}
    return data


def load_settings(profile_path: Path = PROFILE_PATH) -> Settings:
    """Build Settings from the environment (and .env) plus the YAML profile."""
    profile = load_profile(profile_path)
    contact = profile.get("contact") or {}
    if get_env("PHONE_NUMBER"):
        contact["phone"] = get_env("PHONE_NUMBER")
    if get_env("ADDRESS"):
        contact["address"] = get_env("ADDRESS")
    if get_env("CV_PATH"):
        profile["cv_path"] = get_env("CV_PATH")
    profile["contact"] = contact

    defaults = Settings()
    settings = Settings(
        linkedin_email=get_env("LINKEDIN_EMAIL"),
        linkedin_password=get_env("LINKEDIN_PASSWORD"),
        headless=get_bool("HEADLESS_MODE", True),
        fresh_start=get_bool("FRESH_START", False),
        database_path=get_env("DATABASE_PATH", defaults.database_path),
        cookies_path=get_env("COOKIES_PATH", defaults.cookies_path),
        screenshots_dir=get_env("SCREENSHOTS_DIR", defaults.screenshots_dir),
        reports_dir=get_env("REPORTS_DIR", defaults.reports_dir),
        browser_timeout_ms=get_int("BROWSER_TIMEOUT", defaults.browser_timeout_ms),
        scrape_interval_minutes=get_int("SCRAPE_INTERVAL_MINUTES", 10),
        track_interval_minutes=get_int("TRACK_INTERVAL_MINUTES", 30),
        company_interval_minutes=get_int("COMPANY_INTERVAL_MINUTES", 120),
        auto_apply_interval_minutes=get_int("AUTO_APPLY_INTERVAL_MINUTES", 60),
        maintenance_time=get_env("MAINTENANCE_TIME", "02:00"),
        auto_apply_enabled=get_bool("AUTO_APPLY_ENABLED", False),
        max_applications_per_day=get_int("MAX_APPLICATIONS_PER_DAY", 20),
        application_delay_ms=get_int("APPLICATION_DELAY_MS", 5000),
        item_delay_min_ms=get_int("ITEM_DELAY_MIN_MS", 2000),
        item_delay_max_ms=get_int("ITEM_DELAY_MAX_MS", 4000),
        max_jobs_per_scrape=get_int("MAX_JOBS_PER_SCRAPE", 50),
        max_empty_batches=get_int("MAX_EMPTY_BATCHES", 3),
        max_scrape_pages=get_int("MAX_SCRAPE_PAGES", 25),
        search_keywords=get_list("JOB_SEARCH_KEYWORDS"),
        search_locations=get_list("JOB_LOCATIONS"),
        search_job_types=get_list("JOB_TYPES"),
        business_hours_only=get_bool("BUSINESS_HOURS_ONLY", True),
        business_hours_start=get_int("BUSINESS_HOURS_START", 9),
        business_hours_end=get_int("BUSINESS_HOURS_END", 17),
        job_retention_days=get_int("JOB_RETENTION_DAYS", 30),
        log_retention_days=get_int("LOG_RETENTION_DAYS", 90),
        history_compact_after_days=get_int("HISTORY_COMPACT_AFTER_DAYS", 60),
        history_keep_entries=get_int("HISTORY_KEEP_ENTRIES", 5),
        research_batch_size=get_int("RESEARCH_BATCH_SIZE", 20),
        research_stale_days=get_int("RESEARCH_STALE_DAYS", 30),
        recruiters_per_company=get_int("RECRUITERS_PER_COMPANY", 5),
        login_max_attempts=get_int("LOGIN_MAX_ATTEMPTS", 3),
        login_backoff_seconds=float(get_int("LOGIN_BACKOFF_SECONDS", 10)),
        task_timeout_minutes=get_int("TASK_TIMEOUT_MINUTES", 45),
        drain_timeout_seconds=get_int("DRAIN_TIMEOUT_SECONDS", 60),
        profile=profile,
    )
    if not settings.linkedin_email or not settings.linkedin_password:
        log.warning("LINKEDIN_EMAIL / LINKEDIN_PASSWORD not set; login will fail")
    return settings


def ensure_dirs(settings: Settings) -> None:
    for d in (
        Path(settings.database_path).parent,
        Path(settings.cookies_path).parent,
        Path(settings.screenshots_dir),
        Path(settings.reports_dir),
    ):
        d.mkdir(parents=True, exist_ok=True)

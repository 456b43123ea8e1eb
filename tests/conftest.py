from __future__ import annotations

from datetime import datetime

import pytest

from fakes import Clock, FakeBrowser, FakeLogin
from linkedin_agent.config import Settings
from linkedin_agent.session import SessionManager
from linkedin_agent.store import Database
from linkedin_agent.tasks.base import TaskContext

NOW = datetime(2026, 10, 18, 12, 0, 0)


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        linkedin_email="me@example.com",
        linkedin_password="secret",
        headless=True,
        database_path=":memory:",
        cookies_path=str(tmp_path / "cookies.json"),
        screenshots_dir=str(tmp_path / "shots"),
        reports_dir=str(tmp_path / "reports"),
        item_delay_min_ms=0,
        item_delay_max_ms=0,
        application_delay_ms=0,
        login_backoff_seconds=0,
        auto_apply_enabled=True,
        search_keywords=["python", "sql", "django"],
        profile={"contact": {"phone": "555-0100", "address": "1 Main St"}},
    )


@pytest.fixture
def store(clock):
    db = Database(":memory:", clock=clock)
    yield db
    db.close()


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def login() -> FakeLogin:
    return FakeLogin(session_valid=True)


@pytest.fixture
def sessions(settings, login, browser) -> SessionManager:
    return SessionManager(settings, login, browser=browser, sleep=lambda s: None)


@pytest.fixture
def ctx(store, sessions, settings, clock) -> TaskContext:
    return TaskContext(store=store, sessions=sessions, settings=settings, clock=clock, sleep=lambda s: None)

"""
Wiring: settings -> store, session, tasks, coordinator.

    discovery / status check / research / auto-apply / maintenance
      -> one coordinator -> one session worker -> one browser
"""
from __future__ import annotations

from dataclasses import dataclass

from linkedin_agent.config import Settings, ensure_dirs, load_settings
from linkedin_agent.linkedin import (
    LinkedInApplicationsPage,
    LinkedInApplyForm,
    LinkedInCompanyDirectory,
    LinkedInJobBoard,
    LinkedInLoginPage,
)
from linkedin_agent.log import get_logger
from linkedin_agent.models import TaskKind
from linkedin_agent.scheduler import Coordinator
from linkedin_agent.session import SessionManager
from linkedin_agent.store import Database
from linkedin_agent.tasks import (
    AutoApplyTask,
    DiscoveryTask,
    MaintenanceTask,
    ResearchTask,
    ScrapeTask,
    StatusCheckTask,
)

log = get_logger(__name__)


@dataclass
class Agent:
    settings: Settings
    store: Database
    sessions: SessionManager
    coordinator: Coordinator


def build_tasks() -> dict[TaskKind, ScrapeTask]:
    return {
        TaskKind.DISCOVERY: DiscoveryTask(LinkedInJobBoard()),
        TaskKind.STATUS_CHECK: StatusCheckTask(LinkedInApplicationsPage()),
        TaskKind.RESEARCH: ResearchTask(LinkedInCompanyDirectory()),
        TaskKind.AUTO_APPLY: AutoApplyTask(LinkedInApplyForm()),
        TaskKind.MAINTENANCE: MaintenanceTask(),
    }


def build_agent(settings: Settings | None = None) -> Agent:
    settings = settings or load_settings()
    ensure_dirs(settings)
    store = Database(settings.database_path)
    sessions = SessionManager(settings, LinkedInLoginPage())
    coordinator = Coordinator(settings, store, sessions, build_tasks())
    log.info(
        "Agent ready (db=%s, headless=%s, auto_apply=%s)",
        settings.database_path, settings.headless, settings.auto_apply_enabled,
    )
    return Agent(settings, store, sessions, coordinator)

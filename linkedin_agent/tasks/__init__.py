from __future__ import annotations

from linkedin_agent.tasks.auto_apply import AutoApplyTask
from linkedin_agent.tasks.base import RunTally, ScrapeTask, TaskContext
from linkedin_agent.tasks.discovery import DiscoveryTask
from linkedin_agent.tasks.maintenance import MaintenanceTask
from linkedin_agent.tasks.research import ResearchTask
from linkedin_agent.tasks.status_check import StatusCheckTask

__all__ = [
    "AutoApplyTask",
    "DiscoveryTask",
    "MaintenanceTask",
    "ResearchTask",
    "RunTally",
    "ScrapeTask",
    "StatusCheckTask",
    "TaskContext",
]

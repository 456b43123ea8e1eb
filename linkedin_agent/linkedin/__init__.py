"""Playwright adapters for LinkedIn pages."""
from __future__ import annotations

from linkedin_agent.linkedin.applications import LinkedInApplicationsPage
from linkedin_agent.linkedin.apply import LinkedInApplyForm
from linkedin_agent.linkedin.companies import LinkedInCompanyDirectory
from linkedin_agent.linkedin.jobs import LinkedInJobBoard
from linkedin_agent.linkedin.login import LinkedInLoginPage

__all__ = [
    "LinkedInApplicationsPage",
    "LinkedInApplyForm",
    "LinkedInCompanyDirectory",
    "LinkedInJobBoard",
    "LinkedInLoginPage",
]

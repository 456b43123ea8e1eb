"""LinkedIn login page and verification challenge detection."""
from __future__ import annotations

import time
from typing import Any

from linkedin_agent.linkedin.dom import BASE_URL, click_first_visible, first_visible, navigate, visible
from linkedin_agent.log import get_logger
from linkedin_agent.scraping import LoginPage

log = get_logger(__name__)

LOGIN_URL = f"{BASE_URL}/login"
FEED_URL = f"{BASE_URL}/feed/"

_LOGGED_IN_MARKERS = [
    ".global-nav__me",
    '[data-test-id="nav-global-me"]',
    ".feed-container",
    ".global-nav__primary-link--me",
]

# (kind, selectors) checked in order; first hit wins.
_CHALLENGES: list[tuple[str, list[str]]] = [
    ("captcha", [".captcha-container", ".challenge-page", "iframe[src*='captcha']"]),
    ("phone", [".phone-verification", "input[name='phoneNumber']"]),
    ("pin", [".challenge-pin", "input[name='pin']"]),
    (
        "email_code",
        ['input[placeholder*="Enter code"]', 'input[placeholder*="verification"]', "#input__email_verification_pin"],
    ),
    ("verification", [".challenge-form", ".verification-page", ".challenge-container"]),
]


def _signed_out_url(url: str) -> bool:
    return "/login" in url or "/checkpoint" in url or "/authwall" in url


class LinkedInLoginPage(LoginPage):
    def open_home(self, page: Any) -> None:
        navigate(page, FEED_URL)

    def is_logged_in(self, page: Any) -> bool:
        url = page.url or ""
        if _signed_out_url(url):
            return False
        if first_visible(page, _LOGGED_IN_MARKERS, timeout=5000) is not None:
            return True
        return "/feed/" in url or "/in/" in url

    def still_logged_in(self, page: Any) -> bool:
        url = page.url or ""
        if _signed_out_url(url):
            return False
        if not url.startswith(BASE_URL):
            # blank tab or an external apply site; nothing to judge by
            return True
        return first_visible(page, _LOGGED_IN_MARKERS, timeout=1500) is not None

    def open_login(self, page: Any) -> None:
        navigate(page, LOGIN_URL)

    def submit_credentials(self, page: Any, email: str, password: str) -> None:
        page.locator("#username").fill(email)
        time.sleep(0.5)
        page.locator("#password").fill(password)
        time.sleep(0.5)
        page.locator('button[type="submit"]').first.click()
        page.wait_for_load_state("domcontentloaded")
        time.sleep(3)

    def detect_challenge(self, page: Any) -> str | None:
        if "/checkpoint/challenge" in (page.url or "") and visible(page.get_by_text("Let's do a quick verification")):
            return "email_code"
        for kind, selectors in _CHALLENGES:
            if first_visible(page, selectors, timeout=1000) is not None:
                log.warning("Login challenge detected: %s (%s)", kind, page.url)
                return kind
        return None

    def submit_verification_code(self, page: Any, code: str) -> None:
        field = first_visible(
            page,
            ['input[placeholder*="Enter code"]', 'input[placeholder*="verification"]', "input[name='pin']"],
        )
        if field is None:
            log.warning("No verification input found; assuming the challenge was completed in the browser")
            return
        field.fill(code)
        click_first_visible(page, ['button[type="submit"]', "#email-pin-submit-button"])
        page.wait_for_load_state("domcontentloaded")
        time.sleep(3)

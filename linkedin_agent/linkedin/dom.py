"""Small locator helpers that turn "element not there" into a value, not an exception."""
from __future__ import annotations

from typing import Any

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from linkedin_agent.retry import retry

BASE_URL = "https://www.linkedin.com"


@retry(max_attempts=2, base_delay=2.0, retryable=(PlaywrightTimeoutError,))
def navigate(page: Any, url: str) -> None:
    """Open ``url``; one retry on a navigation timeout."""
    page.goto(url, wait_until="domcontentloaded")


def visible(locator: Any, timeout: int = 2000) -> bool:
    """Safe visibility check that never throws."""
    try:
        return locator.count() > 0 and locator.first.is_visible(timeout=timeout)
    except Exception:
        return False


def first_visible(page: Any, selectors: list[str], *, timeout: int = 2000) -> Any | None:
    for sel in selectors:
        loc = page.locator(sel)
        if visible(loc, timeout):
            return loc.first
    return None


def click_first_visible(page: Any, selectors: list[str], *, timeout: int = 3000) -> bool:
    """Try clicking the first visible element matching any selector."""
    loc = first_visible(page, selectors, timeout=timeout)
    if loc is None:
        return False
    loc.click()
    return True


def text_of(root: Any, selectors: str) -> str:
    """Inner text of the first match, or "" when absent."""
    try:
        loc = root.locator(selectors)
        if loc.count() == 0:
            return ""
        return (loc.first.inner_text(timeout=2000) or "").strip()
    except Exception:
        return ""


def attr_of(root: Any, selectors: str, name: str) -> str:
    try:
        loc = root.locator(selectors)
        if loc.count() == 0:
            return ""
        return (loc.first.get_attribute(name, timeout=2000) or "").strip()
    except Exception:
        return ""


def absolute(href: str) -> str:
    if not href:
        return ""
    if href.startswith("/"):
        href = BASE_URL + href
    return href.split("?")[0]

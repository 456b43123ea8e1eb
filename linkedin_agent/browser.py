"""
Playwright browser ownership: launch, liveness probe, cookie jar persistence,
screenshots and teardown. Sync API, so every call must come from the thread
that launched the browser (the scheduler's single worker).
"""
from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from linkedin_agent.config import Settings
from linkedin_agent.errors import SessionError
from linkedin_agent.log import get_logger

log = get_logger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


def _sanitize_browsers_path() -> None:
    pw = os.environ.get("PLAYWRIGHT_BROWSERS_PATH", "")
    if pw and not Path(pw).exists():
        os.environ.pop("PLAYWRIGHT_BROWSERS_PATH", None)


class BrowserManager:
    """One Chromium instance with one context and one page."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cookies_path = Path(settings.cookies_path)
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    # -- lifecycle ----------------------------------------------------------

    def launch(self, *, fresh_start: bool = False) -> None:
        """Start a browser; reuses stored cookies unless ``fresh_start``."""
        if self.is_alive():
            return
        self.close(save=False)
        _sanitize_browsers_path()
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        log.info("Launching browser (headless=%s)", self.settings.headless)
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.settings.headless, args=_LAUNCH_ARGS
            )
            self._context = self._browser.new_context(
                viewport={"width": 1366, "height": 768},
                user_agent=_USER_AGENT,
                locale="en-US",
                extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
            )
            self._context.set_default_timeout(self.settings.browser_timeout_ms)
            self._context.set_default_navigation_timeout(self.settings.browser_timeout_ms)
            if fresh_start:
                self.clear_stored_data()
            else:
                self.load_cookies()
            self._page = self._context.new_page()
        except PlaywrightError as exc:
            self.close(save=False)
            raise SessionError(f"Browser launch failed: {exc}") from exc

    def is_alive(self) -> bool:
        """Cheap probe: the browser is connected and the page still answers."""
        if self._browser is None or self._page is None:
            return False
        try:
            if not self._browser.is_connected() or self._page.is_closed():
                return False
            self._page.evaluate("1")
            return True
        except Exception as exc:  # any driver error means the page is gone
            log.debug("Liveness probe failed: %s", exc)
            return False

    @property
    def page(self) -> Any:
        if self._page is None:
            raise SessionError("Browser is not launched")
        return self._page

    def close(self, *, save: bool = True) -> None:
        if save and self._context is not None and self.is_alive():
            self.save_cookies()
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception as exc:
                log.debug("Ignoring error while closing browser: %s", exc)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:
                log.debug("Ignoring error while stopping playwright: %s", exc)
        self._playwright = self._browser = self._context = self._page = None

    def relaunch(self) -> None:
        log.info("Relaunching browser")
        self.close(save=False)
        self.launch()

    # -- cookie jar ---------------------------------------------------------

    def save_cookies(self) -> None:
        if self._context is None:
            return
        cookies = self._context.cookies()
        self.cookies_path.parent.mkdir(parents=True, exist_ok=True)
        self.cookies_path.write_text(json.dumps(cookies, indent=2), encoding="utf-8")
        log.debug("Saved %d cookies to %s", len(cookies), self.cookies_path)

    def load_cookies(self) -> bool:
        if self._context is None or not self.cookies_path.exists():
            return False
        try:
            cookies = json.loads(self.cookies_path.read_text(encoding="utf-8"))
        except ValueError:
            log.warning("Cookie jar %s is corrupt, ignoring it", self.cookies_path)
            return False
        if cookies:
            self._context.add_cookies(cookies)
            log.info("Loaded %d cookies from %s", len(cookies), self.cookies_path)
        return bool(cookies)

    def clear_stored_data(self) -> None:
        """Forget the previous session: delete the jar and the context's cookies."""
        if self.cookies_path.exists():
            self.cookies_path.unlink()
            log.info("Fresh start: removed %s", self.cookies_path)
        if self._context is not None:
            self._context.clear_cookies()

    # -- helpers ------------------------------------------------------------

    def screenshot(self, label: str) -> Path | None:
        if not self.is_alive():
            return None
        out_dir = Path(self.settings.screenshots_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{label}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.png"
        try:
            self._page.screenshot(path=str(path), full_page=True)
        except Exception as exc:
            log.warning("Screenshot %s failed: %s", label, exc)
            return None
        log.info("Screenshot saved: %s", path)
        return path

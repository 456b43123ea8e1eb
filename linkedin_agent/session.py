"""
Authenticated session lifecycle.

The session is a single shared resource: one browser, one logged-in context.
``SessionManager.lease()`` hands it to one task at a time and makes sure it is
authenticated and alive before the task touches it.

    UNAUTHENTICATED -> AUTHENTICATING -> AUTHENTICATED
                           |    ^
                           v    |
                     CHALLENGE_PENDING -> FAILED
    (any state) -> CLOSED

A verification challenge is fatal when running headless. In interactive mode
the login blocks on the ``ChallengeGate`` until an operator resolves it from
the control channel (stdin or the dashboard).
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator

from linkedin_agent.browser import BrowserManager
from linkedin_agent.config import Settings
from linkedin_agent.errors import (
    ChallengeRequiredError,
    CredentialsMissingError,
    RunAbandoned,
    SessionError,
)
from linkedin_agent.log import get_logger
from linkedin_agent.retry import retry_call
from linkedin_agent.scraping import LoginPage

log = get_logger(__name__)


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CHALLENGE_PENDING = "challenge_pending"
    FAILED = "failed"
    CLOSED = "closed"


_ALLOWED: dict[SessionState, set[SessionState]] = {
    SessionState.UNAUTHENTICATED: {SessionState.AUTHENTICATING},
    SessionState.AUTHENTICATING: {
        SessionState.AUTHENTICATING,
        SessionState.AUTHENTICATED,
        SessionState.CHALLENGE_PENDING,
        SessionState.FAILED,
    },
    SessionState.CHALLENGE_PENDING: {
        SessionState.AUTHENTICATING,
        SessionState.AUTHENTICATED,
        SessionState.FAILED,
    },
    SessionState.AUTHENTICATED: {SessionState.UNAUTHENTICATED, SessionState.AUTHENTICATING},
    SessionState.FAILED: {SessionState.AUTHENTICATING, SessionState.UNAUTHENTICATED},
    SessionState.CLOSED: set(),
}


class ChallengeGate:
    """Rendezvous between a blocked login and the operator who clears the challenge."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: str | None = None
        self._resolution: str | None = None
        self._abandoned = False
        self._listeners: list[Callable[[str], None]] = []

    def add_listener(self, fn: Callable[[str], None]) -> None:
        self._listeners.append(fn)

    @property
    def pending(self) -> str | None:
        with self._cond:
            return self._pending

    def announce(self, kind: str) -> None:
        with self._cond:
            self._pending = kind
            self._resolution = None
        log.warning(
            "NEEDS HUMAN: %s verification pending. Complete it in the browser window "
            "(or enter the code on the control channel) to continue.",
            kind,
        )
        for fn in list(self._listeners):
            try:
                fn(kind)
            except Exception as exc:
                log.error("Challenge listener %r failed: %s", fn, exc)

    def resolve(self, code: str | None = None) -> bool:
        """Release the waiting login. Returns False when nothing is pending."""
        with self._cond:
            if self._pending is None:
                return False
            self._resolution = (code or "").strip()
            self._cond.notify_all()
        log.info("Challenge resolution received")
        return True

    def abandon(self) -> None:
        with self._cond:
            self._abandoned = True
            self._cond.notify_all()

    def wait(self) -> str | None:
        """Block until resolved; returns the code the operator typed, if any."""
        with self._cond:
            while self._resolution is None and not self._abandoned:
                self._cond.wait()
            self._pending = None
            if self._abandoned:
                raise RunAbandoned("Shutdown while waiting for challenge resolution")
            code, self._resolution = self._resolution, None
        return code or None


class Session:
    """Handle given to a task for the duration of its lease."""

    def __init__(self, manager: "SessionManager") -> None:
        self._manager = manager

    @property
    def page(self) -> Any:
        return self._manager.live_page()

    def screenshot(self, label: str) -> None:
        self._manager.browser.screenshot(label)


class SessionManager:
    def __init__(
        self,
        settings: Settings,
        login_page: LoginPage,
        *,
        browser: BrowserManager | None = None,
        gate: ChallengeGate | None = None,
        sleep: Callable[[float], Any] | None = None,
    ) -> None:
        self.settings = settings
        self.login_page = login_page
        self.browser = browser or BrowserManager(settings)
        self.gate = gate or ChallengeGate()
        self._sleep = sleep
        self._state = SessionState.UNAUTHENTICATED
        self._state_lock = threading.Lock()
        self._auth_lock = threading.RLock()
        self._lease_lock = threading.Lock()
        self._fresh_start = settings.fresh_start
        self.last_error: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    def _transition(self, new: SessionState) -> None:
        with self._state_lock:
            old = self._state
            if new is not SessionState.CLOSED and new not in _ALLOWED[old]:
                raise SessionError(f"Illegal session transition {old.value} -> {new.value}")
            self._state = new
        if old is not new:
            log.debug("Session %s -> %s", old.value, new.value)

    # -- authentication -----------------------------------------------------

    def ensure_authenticated(self) -> None:
        """Make the session usable or raise SessionError."""
        with self._auth_lock:
            if self._state is SessionState.CLOSED:
                raise SessionError("Session is closed")
            if self._state is SessionState.AUTHENTICATED:
                if not self.browser.is_alive():
                    log.warning("Browser is no longer responsive; recovering session")
                elif self.login_page.still_logged_in(self.browser.page):
                    return
                else:
                    log.warning("Signed out of LinkedIn; logging in again")
                self._transition(SessionState.UNAUTHENTICATED)

            if not self.browser.is_alive():
                self.browser.launch(fresh_start=self._fresh_start)
                self._fresh_start = False

            self._transition(SessionState.AUTHENTICATING)
            try:
                retry_call(
                    self._authenticate_once,
                    max_attempts=max(1, self.settings.login_max_attempts),
                    base_delay=self.settings.login_backoff_seconds,
                    max_delay=max(self.settings.login_backoff_seconds * 4, 1.0),
                    retryable=(Exception,),
                    non_retryable=(ChallengeRequiredError, CredentialsMissingError, RunAbandoned),
                    on_retry=self._before_retry,
                    sleep=self._sleep,
                    name="login",
                )
            except ChallengeRequiredError as exc:
                self._fail(str(exc))
                raise
            except RunAbandoned:
                self._fail("abandoned during challenge")
                raise
            except SessionError as exc:
                self._fail(str(exc))
                raise
            except Exception as exc:
                self._fail(str(exc))
                raise SessionError(f"Login failed: {exc}") from exc

            self._transition(SessionState.AUTHENTICATED)
            self.last_error = None
            try:
                self.browser.save_cookies()
            except OSError as exc:
                log.warning("Could not persist cookies: %s", exc)
            log.info("LinkedIn session authenticated")

    def _fail(self, reason: str) -> None:
        self.last_error = reason
        if self._state is not SessionState.CLOSED:
            self._transition(SessionState.FAILED)
        log.error("Authentication failed: %s", reason)

    def _before_retry(self, attempt: int, exc: BaseException) -> None:
        self.browser.screenshot(f"login_failed_attempt{attempt}")
        self.browser.relaunch()
        self._transition(SessionState.AUTHENTICATING)

    def _authenticate_once(self) -> None:
        page = self.browser.page
        self.login_page.open_home(page)
        if self.login_page.is_logged_in(page):
            log.info("Stored session is still valid")
            return

        if not self.settings.linkedin_email or not self.settings.linkedin_password:
            raise CredentialsMissingError("LINKEDIN_EMAIL / LINKEDIN_PASSWORD are not configured")

        log.info("Logging in as %s", self.settings.linkedin_email)
        self.login_page.open_login(page)
        self.login_page.submit_credentials(page, self.settings.linkedin_email, self.settings.linkedin_password)

        challenge = self.login_page.detect_challenge(page)
        if challenge:
            self._handle_challenge(page, challenge)

        if not self.login_page.is_logged_in(page):
            raise SessionError("Login did not reach an authenticated page")

    def _handle_challenge(self, page: Any, kind: str) -> None:
        self._transition(SessionState.CHALLENGE_PENDING)
        self.browser.screenshot(f"challenge_{kind}")
        if self.settings.headless:
            raise ChallengeRequiredError(kind)
        self.gate.announce(kind)
        code = self.gate.wait()
        if code:
            self.login_page.submit_verification_code(page, code)
        self._transition(SessionState.AUTHENTICATING)

    # -- leasing ------------------------------------------------------------

    def live_page(self) -> Any:
        """The page, relaunching and re-authenticating a dead browser first."""
        if not self.browser.is_alive():
            self.ensure_authenticated()
        return self.browser.page

    @contextmanager
    def lease(self) -> Iterator[Session]:
        """Exclusive, authenticated access to the session."""
        with self._lease_lock:
            self.ensure_authenticated()
            yield Session(self)

    @property
    def leased(self) -> bool:
        return self._lease_lock.locked()

    def close(self) -> None:
        """Persist cookies and shut the browser; call from the browser's thread."""
        with self._auth_lock:
            if self._state is SessionState.CLOSED:
                return
            try:
                self.browser.close(save=self._state is SessionState.AUTHENTICATED)
            finally:
                self._transition(SessionState.CLOSED)
        log.info("Session closed")

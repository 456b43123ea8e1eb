"""Exception taxonomy shared by the session layer, tasks, store and scheduler."""
from __future__ import annotations


class AgentError(Exception):
    """Base class for every error raised by the agent."""


# -- session ----------------------------------------------------------------

class SessionError(AgentError):
    """The authenticated browsing context could not be established or recovered."""


class ChallengeRequiredError(SessionError):
    """A human-only verification step appeared while running unattended."""

    def __init__(self, challenge: str, message: str | None = None) -> None:
        self.challenge = challenge
        super().__init__(message or f"Verification required: {challenge}")


class CredentialsMissingError(SessionError):
    """No stored session is valid and no credentials are configured."""


# -- items ------------------------------------------------------------------

class ItemError(AgentError):
    """A single job/application/company could not be processed."""


class ValidationError(ItemError):
    """An entity is malformed and must not be persisted."""


# -- store ------------------------------------------------------------------

class StoreError(AgentError):
    """Persistence failed."""


class NotFoundError(StoreError):
    """A referenced record does not exist."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class ConflictError(StoreError):
    """The write would violate a uniqueness rule."""


class DailyCapReached(ConflictError):
    """The daily application cap was already met when the insert was attempted."""

    def __init__(self, cap: int, count: int) -> None:
        self.cap = cap
        self.count = count
        super().__init__(f"Daily application cap reached ({count}/{cap})")


# -- runs -------------------------------------------------------------------

class RunInterrupted(AgentError):
    """A run stopped cooperatively before finishing its items."""


class TaskTimeoutError(RunInterrupted):
    """The run went past its deadline."""


class RunAbandoned(RunInterrupted):
    """Shutdown was requested while the run was in progress."""


class UnknownTaskError(AgentError):
    """No scheduled job is registered under the requested kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown task: {kind}")

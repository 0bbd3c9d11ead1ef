"""Error taxonomy shared by the core and adapters."""

from __future__ import annotations


class TriageError(Exception):
    """Base class for every error raised by triage reminders."""


class StartupConfigError(TriageError):
    """Configuration is unusable; nothing should be scheduled."""


class StoreError(TriageError):
    """The team store could not be read."""


class WorkspaceError(TriageError):
    """Processing of a single workspace failed."""

    def __init__(self, team_id: str, cause: BaseException) -> None:
        super().__init__(f"workspace {team_id} failed: {cause!r}")
        self.team_id = team_id
        self.cause = cause


class DispatchError(TriageError):
    """A single threaded reply could not be delivered."""


class NotifierError(TriageError):
    """Generic failure reported by the chat platform client."""


class AuthError(NotifierError):
    """The workspace credential was rejected (revoked, uninstalled...)."""


class RateLimitError(NotifierError):
    """The platform asked us to back off."""

    def __init__(self, message: str, retry_after: "int | None" = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NetworkError(NotifierError):
    """Transport-level failure talking to the platform."""

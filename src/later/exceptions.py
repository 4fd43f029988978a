"""Exception classes for the session engine."""


class LaterError(Exception):
    """Base exception for Later errors."""

    pass


class EnumerationFailed(LaterError):
    """Raised when the running applications cannot be listed.

    Fatal to the save attempt that hit it; the next user action retries.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# A save fails only when enumeration fails.
SaveFailed = EnumerationFailed


class PerAppActionFailed(LaterError):
    """Raised when hide, terminate or open fails for a single application."""

    def __init__(self, app: str, reason: str):
        super().__init__(f"{app}: {reason}")
        self.app = app
        self.reason = reason


class PersistenceFailed(LaterError):
    """Raised when settings or the session could not be written to disk."""

    pass


class SessionBusy(LaterError):
    """Raised when a save or restore is requested while another is running."""

    pass

from typing import Optional


class TrackerError(Exception):
    """Base class for every error raised by the tracker package."""


class ValidationError(TrackerError):
    """Bad user input: nothing was persisted and local state is unchanged."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class RemoteWriteError(TrackerError):
    """The document store rejected or failed a write."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.message = message
        self.path = path


class MissingReference(TrackerError):
    """No signed-in owner or year to build a store path from."""


class AuthError(TrackerError):
    pass


class RemoteReadError(TrackerError):
    """The document store could not be read or listened to."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.message = message
        self.path = path

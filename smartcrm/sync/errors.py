"""Exceptions raised by the sync subsystem."""


class SyncError(Exception):
    """Base class for sync errors."""
    pass


class PersistenceError(SyncError):
    """Raised when the local queue cannot be read or written."""
    pass


class InvalidOperationError(SyncError, ValueError):
    """Raised when an operation is queued with bad arguments."""
    pass


class UnknownEntityTypeError(SyncError):
    """Raised when no handler is registered for an entity type."""
    pass


class ConflictError(SyncError):
    """Raised by a handler when the remote copy diverged from the local one.

    ``server_data`` carries the remote record so the engine can resolve.
    """

    def __init__(self, message: str, server_data: dict = None):
        super().__init__(message)
        self.server_data = server_data or {}


class ManualResolutionRequired(SyncError, NotImplementedError):
    """Raised for the ``manual`` conflict strategy, which needs a user prompt."""
    pass

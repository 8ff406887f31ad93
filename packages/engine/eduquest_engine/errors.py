from __future__ import annotations


class ProgressionError(Exception):
    pass


class InvalidInputError(ProgressionError, ValueError):
    """Rejected before any state is touched."""


class StoreUnavailableError(ProgressionError):
    """The durable record store could not be read or written."""

    def __init__(self, message: str = "store_unavailable", *, user_id: str | None = None):
        super().__init__(message)
        self.user_id = user_id


class SyncError(ProgressionError):
    pass

"""Platform sync error taxonomy.

Routes map each class to an HTTP status and user-facing wording; the sync
service records every one of them (except the push precondition errors)
in the sync audit log before re-raising.
"""
from typing import Optional


class SyncError(RuntimeError):
    """Base class for every error raised on the pull/push path."""


class ConfigurationError(SyncError):
    """Platform URL/credential or the user's platform account link is missing.

    Never retried; no wire call is made.
    """


class RemoteUnavailable(SyncError):
    """Every attempt to reach the platform failed (network error or timeout)."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


class RemoteRejected(SyncError):
    """The platform answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Platform responded {status_code}: {body[:200]}")
        self.status_code = status_code
        self.body = body


class NotFound(SyncError):
    """The local record to push doesn't exist."""


class NotRemoteSourced(SyncError):
    """The record was never imported from the platform, so it can't be pushed."""


class Forbidden(SyncError):
    """Caller neither owns the record nor holds an elevated role."""


class SyncFailed(SyncError):
    """Unexpected failure during reconciliation."""

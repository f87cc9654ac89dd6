"""
Exceptions raised by the sync core and its collaborators.
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for every sync failure."""


class AuthenticationFailed(SyncError):
    """The origin rejected the stored credentials."""


class VerificationRequired(SyncError):
    """The origin asked for a one-time verification code and none was supplied."""


class SessionExpired(SyncError):
    """The origin redirected to its sign-in flow; the stored cookies are no longer valid."""


class OriginPageError(SyncError):
    """An origin page did not have the expected shape (captcha, changed layout). Retried next cycle."""


class SyncLockBusy(SyncError):
    """Another cycle for the same account is still in flight."""


class DownstreamError(SyncError):
    """A task system call failed. `permanent` errors are not worth retrying."""

    def __init__(self, message: str, status_code: int | None = None, permanent: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.permanent = permanent


__all__ = [
    "SyncError",
    "AuthenticationFailed",
    "VerificationRequired",
    "SessionExpired",
    "OriginPageError",
    "SyncLockBusy",
    "DownstreamError",
]

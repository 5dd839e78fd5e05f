"""Failure taxonomy shared by the reconciliation pipeline."""

from __future__ import annotations


class PayoutSyncError(RuntimeError):
    """Base class for pipeline errors."""


class TransientNetworkError(PayoutSyncError):
    """A request-level failure local to one strategy; the chain falls through."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class AuthExpired(TransientNetworkError):
    """The credential was rejected. Signals the run, not just the strategy."""


class UnparseableRecord(PayoutSyncError):
    """A raw record lacks the minimum fields to become a canonical record."""

    def __init__(self, reason: str, *, raw: object = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class StateFileError(PayoutSyncError):
    """The persisted state file exists but cannot be read as a dataset."""

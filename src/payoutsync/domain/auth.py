"""Tell expired credentials apart from ordinary transient failures."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import AuthExpired, TransientNetworkError

if TYPE_CHECKING:
    from collections.abc import Collection

AUTH_MESSAGE_MARKERS = ("login", "auth", "session")


def is_auth_failure(error: TransientNetworkError, *, auth_codes: Collection[int]) -> bool:
    if isinstance(error, AuthExpired):
        return True
    if error.code is not None and error.code in auth_codes:
        return True
    if error.status_code is not None and error.status_code in auth_codes:
        return True
    message = error.message.lower()
    return any(marker in message for marker in AUTH_MESSAGE_MARKERS)


def classify_failure(
    error: BaseException, *, auth_codes: Collection[int]
) -> TransientNetworkError:
    """Return the failure as a ``TransientNetworkError``, upgraded to ``AuthExpired`` on a match."""

    if not isinstance(error, TransientNetworkError):
        # Only responses from the platform are inspected; local bugs stay generic.
        return TransientNetworkError(f"{type(error).__name__}: {error}")

    if isinstance(error, AuthExpired) or not is_auth_failure(error, auth_codes=auth_codes):
        return error

    expired = AuthExpired(error.message, code=error.code, status_code=error.status_code)
    expired.__cause__ = error
    return expired

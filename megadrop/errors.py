"""
Exception hierarchy for megadrop.

Remote failures carry a RemoteErrorKind tag set where they are raised
(the store adapter). classify_error() reads the tag and only falls back
to message keywords for exceptions that arrive untagged.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional


class RemoteErrorKind(Enum):
    """Failure classes reported by the remote store adapter."""
    AUTH = "auth"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    QUOTA = "quota"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self is RemoteErrorKind.NETWORK


AUTH_KEYWORDS = ("authentication", "login", "credentials", "unauthorized", "access denied")
RETRYABLE_KEYWORDS = ("network", "timeout", "connection", "temporary", "rate limit")


class MegaDropError(Exception):
    """Base exception for all megadrop errors."""

    pass


class InputValidationError(MegaDropError):
    """Raised when request input is rejected before any remote call."""

    pass


class EmptyFileError(InputValidationError):
    """Raised when the uploaded file has no bytes."""

    def __init__(self, message: str = "File is empty") -> None:
        super().__init__(message)


class FileTooLargeError(InputValidationError):
    """Raised when the uploaded file exceeds the size limit."""

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"File too large (max {limit // (1024 * 1024)}MB)")


class InvalidDeviceIdError(InputValidationError):
    pass


class InvalidSourceLocationError(InputValidationError):
    pass


class InvalidFileNameError(InputValidationError):
    pass


class AuthenticationExhausted(MegaDropError):
    """Raised when every authentication attempt failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error is not None else "unknown error"
        super().__init__(f"MEGA authentication failed after {attempts} attempts: {detail}")


class RemoteError(MegaDropError):
    """A failed call against the remote store, tagged with its class."""

    def __init__(self, message: str, kind: RemoteErrorKind = RemoteErrorKind.UNKNOWN) -> None:
        self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


class RemoteStructuralError(RemoteError):
    """Raised when folder listing or creation fails."""

    pass


class NotConnectedError(RemoteError):
    """Raised when an operation needs a session that is not established."""

    def __init__(self, message: str = "MEGA service not connected") -> None:
        super().__init__(message, RemoteErrorKind.AUTH)


def classify_error(exc: BaseException) -> RemoteErrorKind:
    """Return the failure class of an exception."""
    if isinstance(exc, RemoteError):
        return exc.kind
    if isinstance(exc, AuthenticationExhausted):
        return RemoteErrorKind.AUTH
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return RemoteErrorKind.NETWORK
    return classify_message(str(exc))


def classify_message(message: str) -> RemoteErrorKind:
    """Keyword fallback for errors that carry no tag."""
    text = message.lower()
    if any(keyword in text for keyword in AUTH_KEYWORDS):
        return RemoteErrorKind.AUTH
    if any(keyword in text for keyword in RETRYABLE_KEYWORDS):
        return RemoteErrorKind.NETWORK
    return RemoteErrorKind.UNKNOWN

# src/fieldportal/core/errors.py

"""Error taxonomy of the synchronization core."""

from __future__ import annotations


class FieldPortalError(Exception):
    """Base class for all errors raised by the synchronization core."""

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class AuthExpired(FieldPortalError):
    """The session cannot be recovered; the user has been sent to the login surface.

    Raised only by the request gateway, after it has already cleared the session
    and signalled navigation. Callers must not report it again.
    """

    def __init__(self, message: str = "Session expired, please log in again") -> None:
        super().__init__(message)


class NetworkFailure(FieldPortalError):
    """Transport-level failure (DNS, connect, read timeout, ...)."""


class MalformedResponse(FieldPortalError):
    """A response body could not be parsed into the expected shape."""


class PartialResolutionFailure(FieldPortalError):
    """One lookup kind's batch fetch failed; sibling kinds are unaffected."""

    def __init__(self, kind: str, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or f"lookup fetch failed for {kind}")

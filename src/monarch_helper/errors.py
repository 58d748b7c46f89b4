"""Exceptions raised by `monarch_helper`."""

from __future__ import annotations

from typing import Any


class MonarchError(Exception):
    """Raised on any error specific to `monarch_helper`."""


class InvalidArgumentsError(MonarchError):
    """Inconsistent arguments, detected before any network call."""


class RequireMFAError(MonarchError):
    """The service asked for a one-time code to complete login."""


class LoginFailedError(MonarchError):
    """Login or multi-factor authentication was rejected."""

    def __init__(
        self, message: str, status: int | None = None, error_code: str | None = None
    ) -> None:
        """Initialize new instance.

        Args:
            message: human readable reason.
            status: HTTP status returned by the login endpoint, if any.
            error_code: `error_code` reported by the service, if any.

        """
        super().__init__(message)
        self.status = status
        self.error_code = error_code


class NotAuthenticatedError(LoginFailedError):
    """A request was attempted before a token was available."""


class SessionFileError(MonarchError):
    """The saved session file could not be read or parsed."""


class TransportFailedError(MonarchError):
    """Network, timeout or HTTP failure while talking to the service."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ProtocolError(MonarchError):
    """The service answered with a GraphQL error payload."""

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:  # pyright: ignore[reportExplicitAny]
        super().__init__(message)
        self.errors = errors or []


class RequestFailedError(MonarchError):
    """A mutation reported failure.

    `errors` holds the payload error list exactly as the service returned it.
    """

    def __init__(self, errors: object, message: str | None = None) -> None:
        super().__init__(message or f"Request failed: {errors}")
        self.errors = errors

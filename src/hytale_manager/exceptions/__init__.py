"""Exception hierarchy shared by every manager component.

Every error raised out of a public operation carries a status-like integer
with HTTP semantics so the command dispatcher can surface it unchanged.

Exception classes support two patterns:
1. No-argument raise: raise ConflictError()
2. Contextual attributes: err = ChecksumMismatchError(expected="ab", actual="cd"); raise err
"""

from typing import Any


class ManagerError(Exception):
    """Base exception for all manager errors.

    Supports keyword arguments that are stored as attributes for debugging.
    """

    default_status = 500

    def __init__(self, message: str = "", *, status: int | None = None, **kwargs: Any) -> None:
        if not message:
            message = self.__class__.__doc__ or "Manager error occurred"
        super().__init__(message)
        self.message = message
        self.status = status if status is not None else self.default_status
        for key, value in kwargs.items():
            setattr(self, key, value)


class ValidationError(ManagerError):
    """Request data failed validation."""

    default_status = 400


class AuthorizationError(ManagerError):
    """Credentials were missing or rejected."""

    default_status = 401


class PermissionDeniedError(ManagerError):
    """Caller is not allowed to perform this operation."""

    default_status = 403


class NotFoundError(ManagerError):
    """Requested resource does not exist."""

    default_status = 404


class ConflictError(ManagerError):
    """Operation conflicts with the current server state."""

    default_status = 409


class UpstreamError(ManagerError):
    """Upstream API returned an unexpected response."""

    default_status = 502


class RequestTimeoutError(ManagerError):
    """Upstream request or local operation exceeded its deadline."""

    default_status = 504


class HostEnvironmentError(ManagerError):
    """Host is missing a required tool or runs an unsupported platform."""

    default_status = 500


class ChecksumMismatchError(ValidationError):
    """Downloaded artifact did not match its expected SHA-256 digest."""

    def __init__(self, filename: str, *, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {filename} (expected {expected}, got {actual}).",
            expected=expected,
            actual=actual,
            filename=filename,
        )


def is_authorization_status(error: BaseException) -> bool:
    """Return True when ``error`` is a manager error carrying 401 or 403."""
    return isinstance(error, ManagerError) and error.status in (401, 403)


__all__ = [
    "AuthorizationError",
    "ChecksumMismatchError",
    "ConflictError",
    "HostEnvironmentError",
    "ManagerError",
    "NotFoundError",
    "PermissionDeniedError",
    "RequestTimeoutError",
    "UpstreamError",
    "ValidationError",
    "is_authorization_status",
]

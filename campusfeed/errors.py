"""Error taxonomy for CampusFeed.

Every failure surfaced by a repository or service is an :class:`AppError`
subclass so callers can tell "invalid input", "missing", "no permission"
and "backend unavailable" apart without inspecting messages.

Example:
    >>> from campusfeed.errors import NotFoundError
    >>> try:
    ...     raise NotFoundError("Post not found", code=404)
    ... except NotFoundError as exc:
    ...     print(exc.status)
    404
"""

from typing import Any

from pydantic import ValidationError


class AppError(Exception):
    """Base error carrying an optional backend code and HTTP status.

    Args:
        message: User-facing message
        code: Backend envelope code, when the error came from the API
        status: HTTP status, when the error came from the transport
        details: Extra structured context (e.g., field errors)
    """

    default_status: int | None = None

    def __init__(
        self,
        message: str,
        code: int | None = None,
        status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status if status is not None else self.default_status
        self.details = details

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code}, status={self.status})"


class InvalidInputError(AppError):
    """Input rejected before any store mutation."""

    default_status = 400

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "InvalidInputError":
        """Convert a pydantic ValidationError into a user-facing error.

        The first error's message becomes the message; the full list is kept
        in ``details``.
        """
        errors = exc.errors(include_url=False, include_context=False)
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            message = first.get("msg", "Invalid input").removeprefix("Value error, ")
            if location:
                message = f"{location}: {message}"
        else:
            message = "Invalid input"
        return cls(message, details=errors)


class InvalidTransitionError(InvalidInputError):
    """Requested moderation status change is not an allowed edge."""

    default_status = 409


class NotFoundError(AppError):
    """Requested entity has no matching record."""

    default_status = 404


class PermissionDeniedError(AppError):
    """Caller lacks the role or ownership required for the operation."""

    default_status = 403


class AuthenticationError(PermissionDeniedError):
    """Missing, invalid or expired credentials."""

    default_status = 401


class RemoteError(AppError):
    """Opaque transport or backend failure; safe to retry from the UI."""

    default_status = 503

    def __init__(
        self,
        message: str = "Network error, please try again later",
        code: int | None = None,
        status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, code=code, status=status, details=details)


def error_for_status(status: int, message: str, code: int | None = None) -> AppError:
    """Map an HTTP status (or envelope code) onto the error taxonomy.

    Args:
        status: HTTP status or envelope code
        message: Message reported by the backend
        code: Envelope code to preserve on the error

    Returns:
        The matching AppError subclass instance
    """
    if status in (400, 409, 422):
        return InvalidInputError(message, code=code, status=status)
    if status == 401:
        return AuthenticationError(message, code=code, status=status)
    if status == 403:
        return PermissionDeniedError(message, code=code, status=status)
    if status == 404:
        return NotFoundError(message, code=code, status=status)
    return RemoteError(message or RemoteError().message, code=code, status=status)


__all__ = [
    "AppError",
    "InvalidInputError",
    "InvalidTransitionError",
    "NotFoundError",
    "PermissionDeniedError",
    "AuthenticationError",
    "RemoteError",
    "error_for_status",
]

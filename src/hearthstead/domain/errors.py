"""Typed failures raised by the rules layer and its services.

``ValidationFailure`` and ``NotFound`` are raised before any state changes.
``IneligibleAction`` and ``ConflictFailure`` are recoverable: the caller may
gather more resources or refetch and resubmit.
"""

from __future__ import annotations

from .enums import FailureReason


class HearthsteadError(Exception):
    """Base class for every rule failure surfaced to callers."""

    reason: FailureReason | None = None

    def __init__(self, message: str, *, reason: FailureReason | None = None) -> None:
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> dict[str, str | None]:
        return {
            "error": type(self).__name__,
            "reason": str(self.reason) if self.reason is not None else None,
            "message": self.message,
        }


class ValidationFailure(HearthsteadError, ValueError):
    """Input had the wrong shape or an out-of-range value."""


class NotFound(HearthsteadError, LookupError):
    """Subject or catalog entry does not exist."""

    reason = FailureReason.NOT_FOUND


class IneligibleAction(HearthsteadError):
    """A business rule refused the action (level, funds, capacity, ...)."""

    def __init__(self, message: str, *, reason: FailureReason) -> None:
        super().__init__(message, reason=reason)


class ConflictFailure(HearthsteadError):
    """State changed under the caller, or the requested transition is illegal."""

    reason = FailureReason.STALE

"""Error taxonomy for the magic marker engine."""

from __future__ import annotations

from enum import Enum


class MarkerErrorCode(str, Enum):
    """Machine-readable error codes for marker engine failures."""

    INVALID_MARKER = "invalid_marker"
    INVALID_TRIGGER_CONDITION = "invalid_trigger_condition"
    INVALID_TRANSITION = "invalid_transition"
    MARKER_NOT_FOUND = "marker_not_found"


class MarkerEngineError(Exception):
    """Base error raised by marker validation, lifecycle, and lookup helpers."""

    code: MarkerErrorCode = MarkerErrorCode.INVALID_MARKER

    def __init__(
        self,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the error with a message and structured details."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        """Return a serializable error payload."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": dict(self.details),
        }


class MarkerValidationError(MarkerEngineError, ValueError):
    """Raised when marker fields fail construction-time validation."""

    code = MarkerErrorCode.INVALID_MARKER


class InvalidTriggerConditionError(MarkerValidationError):
    """Raised when a marker's trigger configuration is malformed or invalid."""

    code = MarkerErrorCode.INVALID_TRIGGER_CONDITION


class InvalidTransitionError(MarkerEngineError):
    """Raised when a lifecycle event cannot be applied to a marker."""

    code = MarkerErrorCode.INVALID_TRANSITION


class MarkerNotFoundError(MarkerEngineError, LookupError):
    """Raised when a marker id is unknown to the supplied marker set."""

    code = MarkerErrorCode.MARKER_NOT_FOUND


__all__ = [
    "InvalidTransitionError",
    "InvalidTriggerConditionError",
    "MarkerEngineError",
    "MarkerErrorCode",
    "MarkerNotFoundError",
    "MarkerValidationError",
]

"""Exception hierarchy for the learning engine."""

from typing import Any


class LearningEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidObservationError(LearningEngineError):
    """Raised when a performance observation fails validation."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__("Invalid performance observation", {"errors": errors})
        self.errors = errors


class InvalidPositionError(LearningEngineError):
    """Raised when a learning position is missing its identifying keys."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            "Learning position requires user_id, course_id and lesson_id",
            {"missing": missing},
        )


class BackendUnavailableError(LearningEngineError):
    """Raised by a storage backend that cannot be reached."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Position backend unavailable during {operation}",
            {"operation": operation, "reason": reason},
        )
        self.operation = operation

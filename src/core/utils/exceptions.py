from typing import Any, Dict


class AppError(Exception):
    """
    Base exception for application errors.

    Keyword arguments are kept as structured context so callers can render
    an actionable message without parsing the text.
    """

    code: str = "app_error"

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.context}


class ConcurrencyError(AppError):
    """Raised when an optimistic locking conflict occurs."""

    code = "concurrency_conflict"

    def __init__(
        self,
        message: str = "Concurrency conflict detected",
        current_version: int = None,
        **context: Any,
    ):
        self.current_version = current_version
        super().__init__(message, current_version=current_version, **context)


class DuplicateError(AppError):
    """Raised when a unique constraint violation occurs."""

    code = "duplicate"

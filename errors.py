"""Error types raised by the lookup engine."""

from __future__ import annotations


class LookupServiceError(Exception):
    """Base class for errors surfaced to HTTP callers."""


class ValidationError(LookupServiceError):
    """A required query parameter or body field is missing or malformed."""

    def __init__(self, field: str, reason: str = "is required") -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field} {reason}")


class PersistenceError(LookupServiceError):
    """A dataset could not be written to the data directory."""

    def __init__(self, dataset: str, cause: BaseException) -> None:
        self.dataset = dataset
        self.cause = cause
        super().__init__(f"failed to persist dataset '{dataset}': {cause}")

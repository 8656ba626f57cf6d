"""
Error taxonomy for the bird-db service.

Every request-scoped failure derives from BirdDBError and carries the HTTP
status it maps to at the routing boundary. LoadError is the exception: it is
only raised while loading the dataset at startup and is fatal.
"""

from typing import Any


class BirdDBError(Exception):
    """Base class for request-scoped errors."""

    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code


class ValidationError(BirdDBError):
    """Missing or malformed input."""

    status_code = 400


class NotFoundError(BirdDBError):
    """A looked-up entity does not exist."""

    status_code = 404


class EvaluatorError(BirdDBError):
    """A query expression failed to parse or evaluate."""

    status_code = 500


class QueryTimeoutError(EvaluatorError):
    """A query exceeded its execution budget."""

    status_code = 504


class PayloadTooLargeError(BirdDBError):
    status_code = 413


class RateLimitError(BirdDBError):
    status_code = 429


class InternalError(BirdDBError):
    """Unanticipated failure; rendered without internal detail."""

    status_code = 500


class LoadError(Exception):
    """The dataset file could not be loaded."""

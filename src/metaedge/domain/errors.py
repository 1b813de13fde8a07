"""Domain-specific errors.

These errors are mapped to HTTP status codes by the exception handlers in
``http_app``. Transform stages never raise, so there is no transform
error type.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class EdgeDomainError(Exception):
    """Base class for all domain errors."""


@dataclass(frozen=True)
class DomainErrorInfo:
    code: str
    message: str
    detail: Optional[str] = None


class UpstreamError(EdgeDomainError):
    """Transport failure or non-success response from the content API."""

    def __init__(self, message: str, detail: str | None = None, *, status: int | None = None):
        super().__init__(message)
        self.status = status
        self.info = DomainErrorInfo(code="UPSTREAM_ERROR", message=message, detail=detail)


class ValidationError(EdgeDomainError):
    """Raised when required caller input is missing or blank."""

    def __init__(self, message: str, detail: str | None = None, *, examples: list[str] | None = None, usage: str = ""):
        super().__init__(message)
        self.examples = list(examples or [])
        self.usage = usage
        self.info = DomainErrorInfo(code="INVALID_INPUT", message=message, detail=detail)


class NotFoundError(EdgeDomainError):
    """The content API answered successfully but the entity does not exist."""

    def __init__(self, message: str, detail: str | None = None, *, key_name: str = "id", key: str = ""):
        super().__init__(message)
        self.key_name = key_name
        self.key = key
        self.info = DomainErrorInfo(code="NOT_FOUND", message=message, detail=detail)


class UpstreamRejectedError(UpstreamError):
    """The content API answered, but its envelope reports failure (``status != 1``)."""

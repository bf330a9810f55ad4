"""
Custom exception classes for the GitHub project migration tool.
"""

from __future__ import annotations

from typing import Any


class MigrationError(Exception):
    """Base exception for migration errors."""


class ConfigurationError(MigrationError):
    """Raised for missing credentials, bad mapping files or clashing output paths."""


class UnsupportedVersionError(MigrationError):
    """Raised when the connected GitHub Enterprise Server is older than supported."""


class CorrelationError(MigrationError):
    """Raised when source and destination entities cannot be matched up."""


class SnapshotError(MigrationError):
    """Raised when a project snapshot is structurally invalid."""


class RequestError(MigrationError):
    """Raised when a REST or GraphQL request fails at the HTTP or GraphQL level."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        body: Any = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.status: int | None = status
        self.body: Any = body
        self.errors: list[dict[str, Any]] = errors or []


class NotFoundError(RequestError):
    """Raised when the requested object does not exist or is not visible."""


class RateLimitedError(RequestError):
    """Raised when GitHub refuses a request because the rate limit is exhausted."""

"""Custom exception hierarchy for the table grid.

This module defines the errors raised while serving a grid request. The
hierarchy lets callers tell malformed input apart from execution failures,
and within execution failures, timeouts and credential failures from
everything else, because the remediation differs for each.

Exception Categories:
- PlanningError for rejected caller input
- ExecutionError (and its timeout/auth subtypes) for failed statements
- NotConnectedError when no database target is active

Unknown sort and filter columns are not errors; they are silently dropped or
replaced with a fallback before planning.
"""

from __future__ import annotations

from typing import Literal

from sqlalchemy import exc as sa_exc

from .constants import Constants

ExecutionErrorKind = Literal["generic", "timeout", "auth"]


class GridError(Exception):
    """Base exception for table grid operations."""


class PlanningError(GridError):
    """Raised when caller input is malformed and cannot be clamped.

    Examples are negative page numbers or an unknown foreign-key display
    mode. Raised before any SQL is built.
    """


class NotConnectedError(GridError):
    """Raised when a request arrives while no database connection is active."""


class ExecutionError(GridError):
    """Raised when the database rejects or fails to run a generated statement.

    Attributes:
        kind: Classification used by callers to choose a remediation
        details: Driver-level message when it differs from the main message
    """

    kind: ExecutionErrorKind = "generic"

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.details = details

    @property
    def hint(self) -> str | None:
        return None


class QueryTimeoutError(ExecutionError):
    """Raised when a statement exceeds the configured or server-side timeout."""

    kind: ExecutionErrorKind = "timeout"

    @property
    def hint(self) -> str | None:
        return Constants.TIMEOUT_HINT


class AuthenticationError(ExecutionError):
    """Raised when the database rejects the connection's credentials.

    The owner of the shared connection is expected to disconnect on this
    error; the grid itself never manages connections.
    """

    kind: ExecutionErrorKind = "auth"


def classify_execution_error(exc: BaseException) -> ExecutionError:
    """Map a driver or SQLAlchemy failure onto the grid's error taxonomy."""
    message = str(exc) or type(exc).__name__
    original = getattr(exc, "orig", None)
    details = str(original) if original is not None and str(original) != message else None
    haystack = f"{message} {details or ''}".lower()

    if any(marker in haystack for marker in Constants.AUTH_MARKERS):
        return AuthenticationError(message, details=details)
    if isinstance(exc, sa_exc.TimeoutError) or any(
        marker in haystack for marker in Constants.TIMEOUT_MARKERS
    ):
        return QueryTimeoutError(message, details=details)
    return ExecutionError(message, details=details)

"""Request-scoped execution context.

This module provides the ExecutionContext that runs planned statements
against an explicit SQLAlchemy engine. The engine's pool is the only shared
resource; it is owned by the caller and passed in, never held in a module
global, so independent contexts (including test fakes) can run side by
side.

Failures are re-raised as the grid's classified execution errors so that
callers can tell a timeout or a credential failure from any other error.

Classes:
- ExecutionLimits: Per-request execution bounds
- ExecutionContext: Runs statements and exposes the catalog for one engine
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import time
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Connection, Dialect, Engine
from sqlalchemy.exc import SQLAlchemyError

from .catalog import SchemaCatalog
from .exceptions import classify_execution_error

_logger = get_logger(__name__)


@dataclass(slots=True)
class ExecutionLimits:
    """Execution bounds applied to every connection checked out by a context.

    Attributes:
        statement_timeout_sec: Server-side statement timeout; 0 disables it
    """

    statement_timeout_sec: int = 30


class ExecutionContext:
    """Runs grid statements against one database target.

    Attributes:
        engine: SQLAlchemy engine whose pool serves the request
        limits: Execution bounds
    """

    def __init__(self, engine: Engine, limits: ExecutionLimits | None = None) -> None:
        self.engine = engine
        self.limits = limits or ExecutionLimits()

    @property
    def dialect(self) -> Dialect:
        return self.engine.dialect

    def catalog(self) -> SchemaCatalog:
        return SchemaCatalog(self.engine)

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Check out a connection with the statement timeout applied."""
        try:
            with self.engine.connect() as conn:
                self._apply_statement_timeout(conn)
                yield conn
        except SQLAlchemyError as exc:
            _logger.warning("Execution error: %s", exc)
            raise classify_execution_error(exc) from exc

    def run(
        self,
        statement: sa.Executable,
        *,
        conn: Connection | None = None,
        max_rows: int | None = None,
    ) -> list[dict[str, Any]]:
        """Execute a statement and return its rows as plain dicts.

        Args:
            statement: Statement to execute
            conn: Connection to reuse; a new one is checked out when omitted
            max_rows: Fetch at most this many rows; all rows when None
        """
        if conn is None:
            with self.connect() as own:
                return self.run(statement, conn=own, max_rows=max_rows)

        start = time.perf_counter()
        try:
            mapped = conn.execute(statement).mappings()
            fetched = mapped.all() if max_rows is None else mapped.fetchmany(max_rows)
            rows = [dict(row) for row in fetched]
        except SQLAlchemyError as exc:
            _logger.warning("Execution error: %s", exc)
            raise classify_execution_error(exc) from exc
        _logger.debug(
            "Statement finished (elapsed_ms=%.1f, rows=%d)",
            (time.perf_counter() - start) * 1000.0,
            len(rows),
        )
        return rows

    def scalar(self, statement: sa.Executable, *, conn: Connection | None = None) -> Any:
        """Execute a statement and return the first column of the first row."""
        if conn is None:
            with self.connect() as own:
                return self.scalar(statement, conn=own)
        try:
            return conn.execute(statement).scalar()
        except SQLAlchemyError as exc:
            _logger.warning("Execution error: %s", exc)
            raise classify_execution_error(exc) from exc

    # ---- internals ---------------------------------------------------------
    def _apply_statement_timeout(self, conn: Connection) -> None:
        """Apply a per-connection statement timeout for supported dialects.

        Best-effort, dialect-specific:
        - PostgreSQL: SET statement_timeout = <ms>
        - MySQL:      SET SESSION MAX_EXECUTION_TIME = <ms>
        Other dialects rely on driver-level timeouts configured on the engine.
        """
        timeout_sec = self.limits.statement_timeout_sec
        if not timeout_sec or timeout_sec <= 0:
            return
        dialect = self.engine.dialect.name
        ms = max(1, int(timeout_sec * 1000))
        try:
            if dialect == "postgresql":
                conn.execute(sa.text("SET statement_timeout = :ms"), {"ms": ms})
            elif dialect in {"mysql", "mariadb"}:
                conn.execute(sa.text("SET SESSION MAX_EXECUTION_TIME = :ms"), {"ms": ms})
        except SQLAlchemyError as e:
            _logger.debug("Could not apply statement timeout: %s", e)

"""Execution flow for the execute_query MCP tool.

This module runs caller-provided SQL, typically text produced by the grid's
saved-query builder, against the active database. It:
- Parses the SQL with sqlglot and admits exactly one read-only query
- Executes it through the request's ExecutionContext
- Caps the number of returned rows and reports truncation
"""

from __future__ import annotations

import time

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from datapeek_mcp.grid.exceptions import PlanningError
from datapeek_mcp.grid.execution import ExecutionContext
from datapeek_mcp.grid.shaper import to_cell_value
from datapeek_mcp.models import QueryExecutionResult
from datapeek_mcp.sqlglot_tools import Dialect, map_sqlalchemy_to_sqlglot

_logger = get_logger(__name__)

# Statement nodes that modify data, schema or permissions, or run procedures
_FORBIDDEN_NODES: tuple[type[exp.Expression], ...] = (
    exp.Insert,
    exp.Update,
    exp.Delete,
    exp.Merge,
    exp.Create,
    exp.Drop,
    exp.Command,
)


def strip_trailing_semicolon(sql: str) -> str:
    s = sql.strip()
    return s.removesuffix(";").rstrip()


def enforce_select_only(sql: str, dialect: Dialect = "sql") -> None:
    """Raise PlanningError unless ``sql`` is a single read-only query.

    Args:
        sql: SQL text to check
        dialect: sqlglot dialect used to parse the text

    Raises:
        PlanningError: If the SQL cannot be parsed, holds more than one
            statement, is not a query, or contains a writing clause
    """
    try:
        statements = [s for s in sqlglot.parse(sql, read=dialect) if s is not None]
    except SqlglotError as exc:
        msg = f"SQL parsing error: {exc}"
        raise PlanningError(msg) from exc

    if len(statements) != 1:
        msg = "Exactly one SELECT statement is allowed"
        raise PlanningError(msg)

    statement = statements[0]
    if not isinstance(statement, exp.Query):
        msg = "Only SELECT queries are permitted"
        raise PlanningError(msg)
    if statement.find(*_FORBIDDEN_NODES) is not None or any(
        select.args.get("into") is not None for select in statement.find_all(exp.Select)
    ):
        msg = "Query contains prohibited operations; only SELECT queries are permitted"
        raise PlanningError(msg)


def run_select(
    context: ExecutionContext, sql: str, *, row_limit: int
) -> QueryExecutionResult:
    """Execute a read-only query and return at most ``row_limit`` rows.

    Raises:
        PlanningError: If the SQL is not a single read-only query
        ExecutionError: If the database rejects or fails the query
    """
    dialect = map_sqlalchemy_to_sqlglot(context.dialect.name)
    base_sql = strip_trailing_semicolon(sql)
    enforce_select_only(base_sql, dialect)

    _logger.info("run_select: start (dialect=%s, row_limit=%d)", dialect, row_limit)
    start = time.perf_counter()
    # One sentinel row detects truncation
    raw_rows = context.run(sa.text(base_sql), max_rows=row_limit + 1)
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    truncated = len(raw_rows) > row_limit
    rows = [
        {key: to_cell_value(val) for key, val in row.items()} for row in raw_rows[:row_limit]
    ]
    _logger.info(
        "Execution finished (elapsed_ms=%.1f, rows_returned=%d, truncated=%s)",
        elapsed_ms,
        len(rows),
        truncated,
    )
    return QueryExecutionResult(
        sql=base_sql,
        rows=rows,
        rows_returned=len(rows),
        row_limit=row_limit,
        truncated=truncated,
        elapsed_ms=elapsed_ms,
    )

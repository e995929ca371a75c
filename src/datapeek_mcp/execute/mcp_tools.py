"""MCP tool registration for read-only SQL execution (execute_query).

Provides a single tool `execute_query(sql: str)` that runs one SELECT
statement, such as the text produced by `build_saved_query`, with a row cap.
Writing statements and unparseable SQL are rejected as planning errors.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from datapeek_mcp.execute.runner import run_select
from datapeek_mcp.grid.mcp_tools import run_guarded
from datapeek_mcp.models import GridErrorResult, QueryExecutionResult
from datapeek_mcp.services.config_service import ConfigService
from datapeek_mcp.services.connection_manager import ConnectionManager

_logger = get_logger(__name__)

MAX_QUERY_DISPLAY = 200


def register_execute_tools(mcp: FastMCP, manager: ConnectionManager) -> None:
    """Register the read-only SQL execution tool."""

    @mcp.tool
    async def execute_query(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        sql: Annotated[
            str,
            Field(
                description=(
                    "Single SELECT statement to run, for example a saved grid query. "
                    "Results are capped; check 'truncated'."
                )
            ),
        ],
    ) -> QueryExecutionResult | GridErrorResult:
        """Run one read-only SELECT statement and return its rows."""
        preview = sql[:MAX_QUERY_DISPLAY] + ("..." if len(sql) > MAX_QUERY_DISPLAY else "")
        _logger.info("execute_query: %s", preview)
        row_limit = ConfigService.result_row_limit()
        return await run_guarded(
            ctx, manager, lambda svc: run_select(svc.context, sql, row_limit=row_limit)
        )

    _ = execute_query

"""MCP tool registration for table grid browsing.

Exposes a `register_grid_tools` function that attaches the grid tools to a
FastMCP instance while delegating actual logic to a GridService obtained
from the server's ConnectionManager. Grid failures are returned as typed
error payloads rather than raised, so callers can act on the error kind.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Literal, TypeVar

from fastmcp import Context, FastMCP
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from datapeek_mcp.grid.exceptions import (
    AuthenticationError,
    ExecutionError,
    GridError,
    NotConnectedError,
    PlanningError,
)
from datapeek_mcp.grid.models import (
    FilterSpec,
    GridState,
    PageRequest,
    SortSpec,
    TableRef,
    parse_fk_mode,
)
from datapeek_mcp.models import (
    DisplayLookupResult,
    GridErrorResult,
    ResultPage,
    SavedQueryResult,
    TableDescription,
    TableListing,
)
from datapeek_mcp.services.config_service import ConfigService
from datapeek_mcp.services.connection_manager import ConnectionManager
from datapeek_mcp.services.grid_service import GridService

_logger = get_logger(__name__)

T = TypeVar("T")

FkModeParam = Literal["key-only", "key-display", "display-only"]


def to_error_result(exc: GridError) -> GridErrorResult:
    """Convert a grid exception into the structured error payload."""
    if isinstance(exc, ExecutionError):
        notes = [exc.hint] if exc.hint else []
        if isinstance(exc, AuthenticationError):
            notes.append("The connection was closed; reconnect with valid credentials.")
        return GridErrorResult(
            error_kind=exc.kind,
            message=str(exc),
            details=exc.details,
            assist_notes=notes,
        )
    if isinstance(exc, NotConnectedError):
        return GridErrorResult(
            error_kind="not_connected",
            message=str(exc),
            assist_notes=["Set DATAPEEK_MCP_DATABASE_URL and restart the server."],
        )
    if isinstance(exc, PlanningError):
        return GridErrorResult(error_kind="planning", message=str(exc))
    return GridErrorResult(error_kind="generic", message=str(exc))


async def run_guarded(
    ctx: Context, manager: ConnectionManager, action: Callable[[GridService], T]
) -> T | GridErrorResult:
    """Run ``action`` against a fresh GridService, converting grid errors to payloads.

    Authentication failures disconnect the active database before the error
    payload is returned.
    """
    try:
        return action(manager.grid_service())
    except GridError as exc:
        if isinstance(exc, AuthenticationError):
            _logger.warning("Authentication failure; disconnecting active database")
            manager.disconnect()
        result = to_error_result(exc)
        await ctx.error(f"{result.error_kind}: {result.message}")
        return result


def register_grid_tools(mcp: FastMCP, manager: ConnectionManager) -> None:
    """Register table browsing tools.

    Provides table listing, table structure, paginated row fetching with
    sort/filter/foreign-key display, saved-query text generation, and
    display-label lookup for foreign-key values.
    """

    async def guarded(ctx: Context, action: Callable[[GridService], T]) -> T | GridErrorResult:
        return await run_guarded(ctx, manager, action)

    @mcp.tool
    async def list_tables(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        schema: Annotated[
            str | None,
            Field(description="Restrict to one schema; default lists all non-system schemas"),
        ] = None,
    ) -> list[TableListing] | GridErrorResult:
        """List browsable base tables."""
        return await guarded(ctx, lambda svc: svc.list_tables(schema))

    @mcp.tool
    async def describe_table(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: Annotated[str, Field(description="Table key 'schema.table' or 'table'")],
    ) -> TableDescription | GridErrorResult:
        """Describe a table's columns, keys and foreign-key references."""
        return await guarded(ctx, lambda svc: svc.describe_table(TableRef.parse(table)))

    @mcp.tool
    async def fetch_table_page(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: Annotated[str, Field(description="Table key 'schema.table' or 'table'")],
        page: Annotated[int, Field(ge=1, description="1-based page number")] = 1,
        page_size: Annotated[
            int | None, Field(ge=1, description="Rows per page (capped at 1000)")
        ] = None,
        sort_column: Annotated[
            str | None,
            Field(description="Column to sort by; unknown columns fall back to the first column"),
        ] = None,
        sort_direction: Annotated[Literal["asc", "desc"], Field(description="Sort order")] = "asc",
        filters: Annotated[
            dict[str, str] | None,
            Field(description="Substring filters {column: text}; unknown columns are ignored"),
        ] = None,
        fk_display_mode: Annotated[
            FkModeParam | None,
            Field(description="How foreign keys are shown; defaults to server configuration"),
        ] = None,
    ) -> ResultPage | GridErrorResult:
        """Fetch one page of table rows with optional sort, filters and FK display values.

        On a timeout, the error payload suggests disabling foreign-key display or
        reducing the page size.
        """
        _logger.info("fetch_table_page: %s page=%d", table, page)
        mode = fk_display_mode or ConfigService.default_fk_display_mode()
        return await guarded(
            ctx,
            lambda svc: svc.fetch_page(
                TableRef.parse(table),
                page=page,
                page_size=page_size,
                sort=SortSpec.from_raw(sort_column, sort_direction),
                filters=filters,
                fk_mode=mode,
            ),
        )

    @mcp.tool
    async def build_saved_query(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: Annotated[str, Field(description="Table key 'schema.table' or 'table'")],
        page: Annotated[int, Field(ge=1, description="Current 1-based page")] = 1,
        page_size: Annotated[int | None, Field(ge=1, description="Current page size")] = None,
        sort_column: Annotated[str | None, Field(description="Current sort column")] = None,
        sort_direction: Annotated[Literal["asc", "desc"], Field(description="Sort order")] = "asc",
        filters: Annotated[
            dict[str, str] | None, Field(description="Current filters {column: text}")
        ] = None,
        fk_display_mode: Annotated[
            FkModeParam | None, Field(description="Current foreign-key display mode")
        ] = None,
        visible_columns: Annotated[
            list[str] | None, Field(description="Columns shown in the grid; default all")
        ] = None,
        previous_query: Annotated[
            str | None, Field(description="Query text generated for the previous view")
        ] = None,
    ) -> SavedQueryResult | GridErrorResult:
        """Generate query text reproducing the current grid view, for saving."""

        def build(svc: GridService) -> SavedQueryResult:
            state = GridState(
                table=TableRef.parse(table),
                page=PageRequest.from_raw(
                    page, page_size, default_page_size=svc.default_page_size
                ),
                sort=SortSpec.from_raw(sort_column, sort_direction),
                filters=FilterSpec.from_mapping(filters),
                fk_mode=parse_fk_mode(fk_display_mode or ConfigService.default_fk_display_mode()),
                visible_columns=visible_columns,
            )
            return SavedQueryResult(sql=svc.build_saved_query_text(previous_query, state))

        return await guarded(ctx, build)

    @mcp.tool
    async def lookup_foreign_key_display(  # pyright: ignore[reportUnusedFunction]
        ctx: Context,
        table: Annotated[str, Field(description="Table owning the foreign key")],
        fk_column: Annotated[str, Field(description="Foreign-key column name")],
        ids: Annotated[
            list[str | int], Field(min_length=1, description="Key values to resolve")
        ],
    ) -> DisplayLookupResult | GridErrorResult:
        """Resolve human-readable labels for foreign-key values."""
        return await guarded(
            ctx, lambda svc: svc.lookup_display_values(TableRef.parse(table), fk_column, ids)
        )

    _ = (
        list_tables,
        describe_table,
        fetch_table_page,
        build_saved_query,
        lookup_foreign_key_display,
    )

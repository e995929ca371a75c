"""datapeek-mcp package for browsing relational tables through a generic grid.

Provides Model Context Protocol (FastMCP) tools that list tables, describe
columns, and fetch paginated, sortable, filterable rows with human-readable
foreign-key values, built on runtime schema introspection.
"""

from datapeek_mcp.grid import (
    FkDisplayMode,
    GridState,
    PaginationStrategy,
    SortSpec,
    TableRef,
)
from datapeek_mcp.models import (
    DisplayLookupResult,
    GridErrorResult,
    QueryExecutionResult,
    ResultPage,
    TableDescription,
)
from datapeek_mcp.services import ConfigService, ConnectionManager, GridService

__all__ = [  # noqa: RUF022
    # Core models
    "DisplayLookupResult",
    "FkDisplayMode",
    "GridErrorResult",
    "GridState",
    "PaginationStrategy",
    "QueryExecutionResult",
    "ResultPage",
    "SortSpec",
    "TableDescription",
    "TableRef",
    # Services
    "ConfigService",
    "ConnectionManager",
    "GridService",
]

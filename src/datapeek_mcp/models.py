"""Pydantic models for MCP tool I/O.

Minimal, task-focused models returned by the grid service and the MCP
tools. Internal planning types live in ``datapeek_mcp.grid.models``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

CellValue = str | int | float | bool | None

# -----------------------
# Browsing
# -----------------------


class TableListing(BaseModel):
    """A browsable table."""

    schema_name: str | None = Field(description="Schema containing the table")
    table_name: str = Field(description="Table name")


class TableColumnInfo(BaseModel):
    """Column structure with its foreign-key reference, when any."""

    name: str = Field(description="Column name")
    data_type: str = Field(description="Declared SQL type")
    max_length: int | None = Field(default=None, description="Declared character length")
    nullable: bool = Field(description="Whether NULL is allowed")
    is_primary_key: bool = Field(description="True when part of the primary key")
    referenced_schema: str | None = Field(default=None, description="FK target schema")
    referenced_table: str | None = Field(default=None, description="FK target table")
    referenced_column: str | None = Field(default=None, description="FK target column")


class TableDescription(BaseModel):
    """Structure of one table."""

    table: str = Field(description="Fully qualified table key 'schema.table'")
    columns: list[TableColumnInfo] = Field(default_factory=list)


# -----------------------
# Grid pages
# -----------------------


class ResultPage(BaseModel):
    """One page of grid rows."""

    rows: list[dict[str, CellValue]] = Field(description="Shaped rows for the page")
    total_count: int = Field(ge=0, description="Rows matching the filters across all pages")
    page: int = Field(ge=1, description="1-based page number")
    page_size: int = Field(ge=1, le=1000, description="Requested rows per page")
    total_pages: int = Field(ge=0, description="ceil(total_count / page_size)")
    generated_query_text: str = Field(description="Literal SQL equivalent to the page query")
    foreign_key_displays: dict[str, str] = Field(
        default_factory=dict,
        description="FK column -> display column on the referenced table, for joined keys",
    )
    fk_display_mode: Literal["key-only", "key-display", "display-only"] = Field(
        default="key-only", description="Foreign-key display mode applied to the rows"
    )
    status: Literal["ok"] = Field(default="ok")


class SavedQueryResult(BaseModel):
    """Query text for saving the current grid view."""

    sql: str = Field(description="Literal SQL reproducing the grid view")
    status: Literal["ok"] = Field(default="ok")


class DisplayLookupResult(BaseModel):
    """Display labels for a set of foreign-key values."""

    display_column: str | None = Field(
        default=None, description="Referenced column used as the label, if one was found"
    )
    values: dict[str, Any] = Field(
        default_factory=dict, description="str(key value) -> display value"
    )


# -----------------------
# Query execution
# -----------------------


class QueryExecutionResult(BaseModel):
    """Rows returned by a read-only query."""

    sql: str = Field(description="SQL that was executed")
    rows: list[dict[str, CellValue]] = Field(default_factory=list)
    rows_returned: int = Field(ge=0)
    row_limit: int = Field(ge=1, description="Maximum rows returned")
    truncated: bool = Field(description="True when more rows matched than were returned")
    elapsed_ms: float = Field(ge=0.0)
    status: Literal["ok"] = Field(default="ok")


# -----------------------
# Errors
# -----------------------


class GridErrorResult(BaseModel):
    """Structured error returned by grid tools instead of raising."""

    status: Literal["error"] = Field(default="error")
    error_kind: Literal["planning", "not_connected", "generic", "timeout", "auth"] = Field(
        description="Failure classification"
    )
    message: str = Field(description="Error message")
    details: str | None = Field(default=None, description="Driver-level details if available")
    assist_notes: list[str] = Field(
        default_factory=list, description="Remediation suggestions for the caller"
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="UTC ISO8601 timestamp of the failure",
    )

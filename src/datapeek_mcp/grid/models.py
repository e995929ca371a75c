"""Data models for table grid requests and plans.

This module contains the value objects that flow through a single grid
request: table references and catalog snapshots, the caller's sort, filter
and paging choices, derived foreign-key display bindings, and the resulting
query plan. Every object is built, used, and discarded within one request.

Models:
- TableRef: Identifies a browsable relation
- ColumnMeta: Catalog snapshot of a single column
- ForeignKeyEdge: One column pair of a foreign-key constraint
- DisplayBinding: Resolved display column for a foreign key
- SortSpec / FilterSpec / PageRequest: Caller choices
- GridState: Grid view captured for saved-query reconstruction
- QueryPlan: Planner output with executable statements
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import math
from typing import Any

import sqlalchemy as sa

from .constants import Constants, FkDisplayMode, PaginationStrategy, SortDirection
from .exceptions import PlanningError


@dataclass(frozen=True, slots=True)
class TableRef:
    """Reference to a table, optionally qualified by schema.

    Attributes:
        schema: Schema name, or None for the connection's default schema
        table: Table name
    """

    schema: str | None
    table: str

    @classmethod
    def parse(cls, key: str) -> TableRef:
        """Build a reference from a ``schema.table`` or bare ``table`` key."""
        schema, sep, table = key.partition(".")
        if not sep:
            return cls(schema=None, table=schema)
        return cls(schema=schema or None, table=table)

    @property
    def key(self) -> str:
        return f"{self.schema}.{self.table}" if self.schema else self.table

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class ColumnMeta:
    """Read-only catalog snapshot of one column.

    Attributes:
        name: Column name as declared in the database
        data_type: Declared SQL type rendered as text (e.g. ``VARCHAR(50)``)
        nullable: Whether the column accepts NULL
        is_primary_key: True when the column belongs to the primary key
        max_length: Declared character length for string types, if any
        ordinal: 1-based ordinal position within the table
    """

    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    max_length: int | None = None
    ordinal: int = 0

    @property
    def is_string(self) -> bool:
        lowered = self.data_type.lower()
        return any(hint in lowered for hint in Constants.STRING_TYPE_HINTS)


@dataclass(frozen=True, slots=True)
class ForeignKeyEdge:
    """A single foreign-key column pair."""

    fk_column: str
    referenced_schema: str | None
    referenced_table: str
    referenced_column: str

    @property
    def referenced(self) -> TableRef:
        return TableRef(schema=self.referenced_schema, table=self.referenced_table)


@dataclass(frozen=True, slots=True)
class DisplayBinding:
    """Display column chosen to represent a foreign key to a human reader."""

    edge: ForeignKeyEdge
    display_column: str

    @property
    def fk_column(self) -> str:
        return self.edge.fk_column

    @property
    def alias(self) -> str:
        return f"{Constants.FK_ALIAS_PREFIX}{self.edge.fk_column}"

    @property
    def display_label(self) -> str:
        return f"{self.edge.fk_column}{Constants.DISPLAY_SUFFIX}"


@dataclass(frozen=True, slots=True)
class SortSpec:
    column: str
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def from_raw(cls, column: str | None, direction: str | None = None) -> SortSpec | None:
        """Build a sort spec; anything but ``desc`` sorts ascending."""
        if not column:
            return None
        desc = (direction or "").strip().lower() == SortDirection.DESC.value
        return cls(column=column, direction=SortDirection.DESC if desc else SortDirection.ASC)


@dataclass(frozen=True, slots=True)
class FilterSpec:
    """Substring filter on a single column."""

    column: str
    pattern: str

    @property
    def like_value(self) -> str:
        return f"%{self.pattern}%"

    @classmethod
    def from_mapping(cls, filters: Mapping[str, str | None] | None) -> list[FilterSpec]:
        """Convert ``{column: pattern}`` into specs, dropping blank patterns."""
        specs: list[FilterSpec] = []
        for column, raw in (filters or {}).items():
            pattern = str(raw).strip() if raw is not None else ""
            if pattern:
                specs.append(cls(column=column, pattern=pattern))
        return specs


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int = 1
    page_size: int = Constants.DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def total_pages(self, total_count: int) -> int:
        return math.ceil(total_count / self.page_size) if total_count > 0 else 0

    @classmethod
    def from_raw(
        cls,
        page: int | None,
        page_size: int | None,
        *,
        default_page_size: int = Constants.DEFAULT_PAGE_SIZE,
    ) -> PageRequest:
        """Normalize caller paging input.

        Missing or zero values take defaults and oversized pages are capped at
        ``Constants.MAX_PAGE_SIZE``.

        Raises:
            PlanningError: If page or page size is negative
        """
        if page is not None and page < 0:
            msg = f"page must be >= 1, got {page}"
            raise PlanningError(msg)
        if page_size is not None and page_size < 0:
            msg = f"page_size must be between 1 and {Constants.MAX_PAGE_SIZE}, got {page_size}"
            raise PlanningError(msg)
        size = page_size or default_page_size
        return cls(page=page or 1, page_size=min(max(size, 1), Constants.MAX_PAGE_SIZE))


def parse_fk_mode(value: str | FkDisplayMode | None) -> FkDisplayMode:
    """Parse a foreign-key display mode, defaulting to key-only.

    Raises:
        PlanningError: If the value names no known mode
    """
    if value is None or value == "":
        return FkDisplayMode.KEY_ONLY
    if isinstance(value, FkDisplayMode):
        return value
    try:
        return FkDisplayMode(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(m.value for m in FkDisplayMode)
        msg = f"Unknown fk display mode {value!r}; expected one of: {allowed}"
        raise PlanningError(msg) from exc


@dataclass(frozen=True)
class GridState:
    """Grid view captured for saving as a reusable query."""

    table: TableRef
    page: PageRequest = field(default_factory=PageRequest)
    sort: SortSpec | None = None
    filters: list[FilterSpec] = field(default_factory=list)
    fk_mode: FkDisplayMode = FkDisplayMode.KEY_ONLY
    visible_columns: list[str] | None = None


@dataclass(frozen=True)
class QueryPlan:
    """Planner output for one grid request.

    Attributes:
        table: Table being browsed
        select_list: Output column labels in select order
        joins: Display bindings joined into the statement
        filters: Validated filters applied in the WHERE clause
        order: Effective sort, or None when no column could be established
        page: Requested page
        strategy: Pagination technique used by ``statement``
        statement: Executable data query
        count_statement: Executable ``count(*)`` over the same predicates
        query_text: Literal, human-readable rendering of ``statement``
    """

    table: TableRef
    select_list: list[str]
    joins: list[DisplayBinding]
    filters: list[FilterSpec]
    order: SortSpec | None
    page: PageRequest
    strategy: PaginationStrategy
    statement: sa.Select[Any]
    count_statement: sa.Select[Any]
    query_text: str = ""

    @property
    def parameters(self) -> dict[str, Any]:
        """Bound parameter values of the data statement."""
        return dict(self.statement.compile().params)

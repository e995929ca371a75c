"""Grid service for datapeek-mcp.

This module orchestrates one grid request end to end: catalog lookup,
identifier validation, foreign-key display resolution, planning, execution
and result shaping. It also rebuilds saved-query text for a grid view and
serves the supplementary browsing lookups (table list, table structure,
display labels for foreign-key values).

The service holds no state between requests beyond its collaborators; the
execution context passed in owns the database engine.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import time
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa

from datapeek_mcp.grid.constants import Constants, FkDisplayMode, PaginationStrategy
from datapeek_mcp.grid.exceptions import PlanningError
from datapeek_mcp.grid.execution import ExecutionContext
from datapeek_mcp.grid.fk_resolver import DisplayColumnStrategy, ForeignKeyResolver
from datapeek_mcp.grid.models import (
    ColumnMeta,
    FilterSpec,
    ForeignKeyEdge,
    GridState,
    PageRequest,
    SortSpec,
    TableRef,
    parse_fk_mode,
)
from datapeek_mcp.grid.planner import QueryPlanner
from datapeek_mcp.grid.reconstructor import QueryTextReconstructor
from datapeek_mcp.grid.shaper import shape_rows, to_cell_value
from datapeek_mcp.grid.validator import IdentifierValidator
from datapeek_mcp.models import (
    DisplayLookupResult,
    ResultPage,
    TableColumnInfo,
    TableDescription,
    TableListing,
)
from datapeek_mcp.sqlglot_tools import SqlglotService

_logger = get_logger(__name__)


def _coerce_key(value: object, column: ColumnMeta) -> object:
    """Convert a textual key to int for integer-typed key columns."""
    if isinstance(value, str) and "int" in column.data_type.lower():
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    return value


class GridService:
    """Serves paginated, sortable, filterable table pages.

    Attributes:
        context: Execution context bound to the active database
        planner: Query planner for the context's dialect
        default_page_size: Page size used when the caller gives none
    """

    def __init__(
        self,
        context: ExecutionContext,
        *,
        strategy: DisplayColumnStrategy | None = None,
        glot: SqlglotService | None = None,
        default_page_size: int = Constants.DEFAULT_PAGE_SIZE,
    ) -> None:
        self.context = context
        self.catalog = context.catalog()
        self.validator = IdentifierValidator(self.catalog)
        self.resolver = ForeignKeyResolver(self.catalog, strategy)
        self.planner = QueryPlanner(context.dialect, glot)
        self.reconstructor = QueryTextReconstructor(self.planner)
        self.default_page_size = default_page_size

    # ---- grid pages --------------------------------------------------------
    def fetch_page(
        self,
        table: TableRef,
        page: int | None = None,
        page_size: int | None = None,
        sort: SortSpec | None = None,
        filters: Mapping[str, str | None] | Iterable[FilterSpec] | None = None,
        fk_mode: FkDisplayMode | str | None = None,
        *,
        strategy: PaginationStrategy | None = None,
    ) -> ResultPage:
        """Fetch one page of rows from a table.

        Args:
            table: Table to browse
            page: 1-based page number; missing or zero means 1
            page_size: Rows per page; capped at 1000
            sort: Optional single-column sort
            filters: ``{column: pattern}`` mapping or FilterSpec list
            fk_mode: Foreign-key display mode
            strategy: Force a pagination strategy (defaults per planner)

        Returns:
            ResultPage with shaped rows, counts, and generated query text

        Raises:
            PlanningError: If paging input or mode is malformed
            ExecutionError: If the count or data statement fails
        """
        page_req = PageRequest.from_raw(page, page_size, default_page_size=self.default_page_size)
        mode = parse_fk_mode(fk_mode)
        filter_specs = self._filter_specs(filters)

        start = time.perf_counter()
        columns = self.catalog.get_columns(table)
        bindings = self.resolver.resolve(table, columns) if mode.needs_joins else []

        plan = self.planner.plan(
            table,
            columns,
            page=page_req,
            sort=sort,
            filters=filter_specs,
            bindings=bindings,
            fk_mode=mode,
            strategy=strategy,
        )

        with self.context.connect() as conn:
            total = int(self.context.scalar(plan.count_statement, conn=conn) or 0)
            raw_rows = self.context.run(plan.statement, conn=conn)

        rows = [
            {key: to_cell_value(val) for key, val in row.items()}
            for row in shape_rows(raw_rows, mode, plan.joins, strategy=plan.strategy)
        ]
        _logger.info(
            "fetch_page %s: page=%d size=%d rows=%d total=%d (elapsed_ms=%.1f)",
            table,
            page_req.page,
            page_req.page_size,
            len(rows),
            total,
            (time.perf_counter() - start) * 1000.0,
        )
        return ResultPage(
            rows=rows,
            total_count=total,
            page=page_req.page,
            page_size=page_req.page_size,
            total_pages=page_req.total_pages(total),
            generated_query_text=plan.query_text,
            foreign_key_displays={b.fk_column: b.display_column for b in plan.joins},
            fk_display_mode=mode.value,
        )

    def build_saved_query_text(self, previous_text: str | None, state: GridState) -> str:
        """Return query text reproducing the grid view in ``state``."""
        columns = self.catalog.get_columns(state.table)
        bindings = (
            self.resolver.resolve(state.table, columns) if state.fk_mode.needs_joins else []
        )
        return self.reconstructor.reconstruct(previous_text, state, columns, bindings)

    # ---- browsing ----------------------------------------------------------
    def list_tables(self, schema: str | None = None) -> list[TableListing]:
        return [
            TableListing(schema_name=ref.schema, table_name=ref.table)
            for ref in self.catalog.list_tables(schema)
        ]

    def describe_table(self, table: TableRef) -> TableDescription:
        """Return the table's columns merged with their foreign-key references."""
        columns = self.catalog.get_columns(table)
        edges: dict[str, ForeignKeyEdge] = {}
        for fk in self.catalog.get_foreign_keys(table):
            edges.setdefault(fk.fk_column, fk)
        infos: list[TableColumnInfo] = []
        for col in columns:
            edge = edges.get(col.name)
            infos.append(
                TableColumnInfo(
                    name=col.name,
                    data_type=col.data_type,
                    max_length=col.max_length,
                    nullable=col.nullable,
                    is_primary_key=col.is_primary_key,
                    referenced_schema=edge.referenced_schema if edge else None,
                    referenced_table=edge.referenced_table if edge else None,
                    referenced_column=edge.referenced_column if edge else None,
                )
            )
        return TableDescription(table=table.key, columns=infos)

    def lookup_display_values(
        self, table: TableRef, fk_column: str, ids: Iterable[object]
    ) -> DisplayLookupResult:
        """Resolve display labels for foreign-key values of ``fk_column``.

        Raises:
            PlanningError: If no ids are given, the column is not on the
                table or not a foreign key, or the referenced column is
                missing from the catalog
        """
        keys = list(dict.fromkeys(ids))
        if not keys:
            msg = "ids must contain at least one value"
            raise PlanningError(msg)
        if not self.validator.validate(table, fk_column):
            msg = f"Column {fk_column!r} not found on {table}"
            raise PlanningError(msg)

        edges = self.catalog.get_foreign_keys(table)
        edge = next((e for e in edges if e.fk_column == fk_column), None)
        if edge is None:
            msg = f"Column {fk_column!r} is not a foreign key of {table}"
            raise PlanningError(msg)

        ref_columns = self.catalog.get_columns(edge.referenced)
        ref_meta = next((c for c in ref_columns if c.name == edge.referenced_column), None)
        if ref_meta is None:
            msg = f"Referenced column {edge.referenced_column!r} not found"
            raise PlanningError(msg)

        display = self.resolver.strategy.choose(edge, ref_columns)
        names = dict.fromkeys([edge.referenced_column, *([display] if display else [])])
        ref = sa.table(
            edge.referenced_table, *[sa.column(n) for n in names], schema=edge.referenced_schema
        )
        key_col = ref.c[edge.referenced_column]
        stmt = sa.select(*ref.c).where(key_col.in_([_coerce_key(k, ref_meta) for k in keys]))

        values: dict[str, Any] = {}
        for row in self.context.run(stmt):
            values[str(row[edge.referenced_column])] = (
                to_cell_value(row[display]) if display else None
            )
        return DisplayLookupResult(display_column=display, values=values)

    # ---- internals ---------------------------------------------------------
    @staticmethod
    def _filter_specs(
        filters: Mapping[str, str | None] | Iterable[FilterSpec] | None,
    ) -> list[FilterSpec]:
        if filters is None:
            return []
        if isinstance(filters, Mapping):
            return FilterSpec.from_mapping(filters)
        return [f for f in filters if f.pattern.strip()]

"""Query planning for paginated table browsing.

This module turns a table reference, its catalog snapshot, and the
caller's sort/filter/page choices into executable SQLAlchemy Core
statements plus a literal text rendering of the same query.

Identifiers only reach the SQL through SQLAlchemy table and column
constructs, which quote them for the active dialect, and only after they
were confirmed against the catalog. Filter values are always bound
parameters.

Two pagination strategies are supported:
- OFFSET: ``ORDER BY <col> OFFSET n LIMIT m`` on the ordered relation
- ROW_NUMBER: a derived table numbering rows with ``ROW_NUMBER()``,
  filtered on the number range; used when no sort column can be
  established

Classes:
- QueryPlanner: Builds QueryPlan objects for a dialect
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import copy
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.engine import Dialect
from sqlalchemy.sql.elements import ColumnElement
from sqlalchemy.sql.expression import TableClause
from sqlalchemy.sql.selectable import FromClause

from datapeek_mcp.sqlglot_tools import (
    SqlFormatRequest,
    SqlglotService,
    map_sqlalchemy_to_sqlglot,
)

from .constants import Constants, FkDisplayMode, PaginationStrategy, SortDirection
from .models import (
    ColumnMeta,
    DisplayBinding,
    FilterSpec,
    PageRequest,
    QueryPlan,
    SortSpec,
    TableRef,
)
from .validator import effective_sort, filter_known, known_names, visible_known

_logger = get_logger(__name__)

# Constant window ordering: any row order satisfies ROW_NUMBER() when no column is known
_CONSTANT_ORDER = sa.literal_column("(SELECT NULL)")


def _table_clause(table: TableRef, columns: Sequence[ColumnMeta]) -> TableClause:
    return sa.table(table.table, *[sa.column(c.name) for c in columns], schema=table.schema)


def _referenced_clause(binding: DisplayBinding) -> FromClause:
    edge = binding.edge
    names = dict.fromkeys([edge.referenced_column, binding.display_column])
    ref = sa.table(
        edge.referenced_table, *[sa.column(n) for n in names], schema=edge.referenced_schema
    )
    return ref.alias(binding.alias)


def _filter_predicates(
    relation: FromClause, columns: Sequence[ColumnMeta], filters: Iterable[FilterSpec]
) -> list[ColumnElement[bool]]:
    """Build one LIKE predicate per filter; non-string columns are cast to text."""
    meta = {c.name: c for c in columns}
    predicates: list[ColumnElement[bool]] = []
    for spec in filters:
        col: ColumnElement[Any] = relation.c[spec.column]
        if not meta[spec.column].is_string:
            col = sa.cast(col, sa.Unicode(Constants.FILTER_CAST_LENGTH))
        predicates.append(col.like(spec.like_value))
    return predicates


def _ordered(col: ColumnElement[Any], direction: SortDirection) -> ColumnElement[Any]:
    return col.desc() if direction is SortDirection.DESC else col.asc()


def _literal_dialect(dialect: Dialect) -> Dialect:
    """Return a copy of ``dialect`` using named parameters.

    format and pyformat dialects render every literal percent sign as ``%%``.
    """
    if dialect.paramstyle not in ("format", "pyformat"):
        return dialect
    rendering = copy.copy(dialect)
    rendering.paramstyle = "named"
    rendering.positional = False
    rendering.identifier_preparer = rendering.preparer(rendering)
    return rendering


def render_sql(statement: sa.Select[Any], dialect: Dialect) -> str:
    """Render a statement with bound values inlined as literals."""
    compiled = statement.compile(
        dialect=_literal_dialect(dialect), compile_kwargs={"literal_binds": True}
    )
    return str(compiled).strip()


class QueryPlanner:
    """Builds paginated, filtered, optionally joined queries for one dialect.

    Attributes:
        dialect: SQLAlchemy dialect used to render query text
        glot: Formatter used to pretty-print the rendered text
    """

    def __init__(self, dialect: Dialect, glot: SqlglotService | None = None) -> None:
        self.dialect = dialect
        self.glot = glot or SqlglotService()

    def plan(
        self,
        table: TableRef,
        columns: Sequence[ColumnMeta],
        *,
        page: PageRequest,
        sort: SortSpec | None = None,
        filters: Iterable[FilterSpec] = (),
        bindings: Iterable[DisplayBinding] = (),
        fk_mode: FkDisplayMode = FkDisplayMode.KEY_ONLY,
        visible_columns: Iterable[str] | None = None,
        strategy: PaginationStrategy | None = None,
    ) -> QueryPlan:
        """Plan the data and count statements for one grid page.

        Args:
            table: Table to browse; existence is not re-verified here
            columns: Catalog snapshot of the table's columns
            page: Requested page
            sort: Requested sort; unknown columns fall back to the first column
            filters: Requested filters; unknown columns are dropped
            bindings: Resolved foreign-key display bindings
            fk_mode: Foreign-key display mode
            visible_columns: Optional subset of columns to select
            strategy: Force a pagination strategy; defaults to OFFSET when a
                sort column exists and ROW_NUMBER otherwise

        Returns:
            QueryPlan with executable statements and literal query text
        """
        order = effective_sort(columns, sort)
        kept_filters = filter_known(columns, filters)
        base_columns = visible_known(columns, list(visible_columns or []))
        base_names = known_names(base_columns)

        joins: list[DisplayBinding] = []
        if fk_mode.needs_joins:
            joins = [b for b in bindings if b.fk_column in base_names]
        if fk_mode is FkDisplayMode.DISPLAY_ONLY:
            joined = {b.fk_column for b in joins}
            base_columns = [c for c in base_columns if c.name not in joined]

        chosen = strategy or (
            PaginationStrategy.OFFSET if order is not None else PaginationStrategy.ROW_NUMBER
        )
        if chosen is PaginationStrategy.OFFSET and order is None:
            _logger.debug("No sort column for %s; using row-number pagination", table)
            chosen = PaginationStrategy.ROW_NUMBER

        if chosen is PaginationStrategy.OFFSET:
            statement = self._offset_statement(
                table, columns, base_columns, joins, kept_filters, order, page
            )
        else:
            statement = self._row_number_statement(
                table, columns, base_columns, joins, kept_filters, order, page
            )

        select_list = [c.name for c in base_columns] or ["*"]
        select_list.extend(b.display_label for b in joins)

        plan = QueryPlan(
            table=table,
            select_list=select_list,
            joins=joins,
            filters=kept_filters,
            order=order,
            page=page,
            strategy=chosen,
            statement=statement,
            count_statement=self._count_statement(table, columns, kept_filters),
            query_text=self.render(statement),
        )
        _logger.info(
            "Planned %s: strategy=%s, joins=%d, filters=%d, order=%s",
            table,
            chosen.value,
            len(joins),
            len(kept_filters),
            f"{order.column} {order.direction.value}" if order else "<none>",
        )
        return plan

    def render(self, statement: sa.Select[Any]) -> str:
        """Render a statement as literal, pretty-printed SQL for the planner's dialect."""
        raw = render_sql(statement, self.dialect)
        result = self.glot.format(
            SqlFormatRequest(sql=raw, dialect=map_sqlalchemy_to_sqlglot(self.dialect.name))
        )
        return result.sql

    # ---- statements --------------------------------------------------------
    def _select_columns(
        self,
        relation: FromClause,
        base_columns: Sequence[ColumnMeta],
        refs: Sequence[tuple[DisplayBinding, FromClause]],
    ) -> list[ColumnElement[Any]]:
        selected: list[ColumnElement[Any]] = [relation.c[c.name] for c in base_columns]
        if not selected:
            selected.append(sa.literal_column(f"{Constants.BASE_ALIAS}.*"))
        selected.extend(ref.c[b.display_column].label(b.display_label) for b, ref in refs)
        return selected

    @staticmethod
    def _join_all(
        relation: FromClause, refs: Sequence[tuple[DisplayBinding, FromClause]]
    ) -> FromClause:
        joined = relation
        for binding, ref in refs:
            joined = joined.outerjoin(
                ref, relation.c[binding.fk_column] == ref.c[binding.edge.referenced_column]
            )
        return joined

    def _offset_statement(
        self,
        table: TableRef,
        columns: Sequence[ColumnMeta],
        base_columns: Sequence[ColumnMeta],
        joins: Sequence[DisplayBinding],
        filters: Sequence[FilterSpec],
        order: SortSpec | None,
        page: PageRequest,
    ) -> sa.Select[Any]:
        base = _table_clause(table, columns).alias(Constants.BASE_ALIAS)
        refs = [(b, _referenced_clause(b)) for b in joins]

        stmt = sa.select(*self._select_columns(base, base_columns, refs)).select_from(
            self._join_all(base, refs)
        )
        predicates = _filter_predicates(base, columns, filters)
        if predicates:
            stmt = stmt.where(sa.and_(*predicates))
        if order is not None:
            stmt = stmt.order_by(_ordered(base.c[order.column], order.direction))
        return stmt.offset(page.offset).limit(page.page_size)

    def _row_number_statement(
        self,
        table: TableRef,
        columns: Sequence[ColumnMeta],
        base_columns: Sequence[ColumnMeta],
        joins: Sequence[DisplayBinding],
        filters: Sequence[FilterSpec],
        order: SortSpec | None,
        page: PageRequest,
    ) -> sa.Select[Any]:
        source = _table_clause(table, columns)
        window_order = (
            _ordered(source.c[order.column], order.direction)
            if order is not None
            else _CONSTANT_ORDER
        )
        row_number = sa.func.row_number().over(order_by=window_order)

        inner_columns: list[ColumnElement[Any]] = [source.c[c.name] for c in columns] or [
            sa.literal_column("*")
        ]
        inner = sa.select(*inner_columns, row_number.label(Constants.ROW_NUMBER_COLUMN))
        inner = inner.select_from(source)
        predicates = _filter_predicates(source, columns, filters)
        if predicates:
            inner = inner.where(sa.and_(*predicates))
        derived = inner.subquery(Constants.BASE_ALIAS)

        refs = [(b, _referenced_clause(b)) for b in joins]
        rn = derived.c[Constants.ROW_NUMBER_COLUMN]
        return (
            sa.select(*self._select_columns(derived, base_columns, refs))
            .select_from(self._join_all(derived, refs))
            .where(rn > page.offset, rn <= page.offset + page.page_size)
            .order_by(rn)
        )

    @staticmethod
    def _count_statement(
        table: TableRef, columns: Sequence[ColumnMeta], filters: Sequence[FilterSpec]
    ) -> sa.Select[Any]:
        source = _table_clause(table, columns)
        stmt = sa.select(sa.func.count().label(Constants.COUNT_LABEL)).select_from(source)
        predicates = _filter_predicates(source, columns, filters)
        if predicates:
            stmt = stmt.where(sa.and_(*predicates))
        return stmt

from __future__ import annotations

from sqlalchemy.dialects import mssql, sqlite
from sqlalchemy.dialects.postgresql import psycopg2 as pg_psycopg2

from datapeek_mcp.grid.constants import FkDisplayMode, PaginationStrategy, SortDirection
from datapeek_mcp.grid.models import (
    ColumnMeta,
    DisplayBinding,
    FilterSpec,
    ForeignKeyEdge,
    PageRequest,
    SortSpec,
    TableRef,
)
from datapeek_mcp.grid.planner import QueryPlanner, render_sql
from datapeek_mcp.sqlglot_tools import normalize_whitespace

ORDERS = TableRef("main", "orders")
COLUMNS = [
    ColumnMeta("id", "INTEGER", is_primary_key=True, ordinal=1),
    ColumnMeta("customer", "TEXT", ordinal=2),
    ColumnMeta("amount", "INTEGER", ordinal=3),
]
MANAGER = DisplayBinding(
    edge=ForeignKeyEdge("managerId", "main", "employee", "id"), display_column="name"
)
ASSIGNMENT_COLUMNS = [
    ColumnMeta("id", "INTEGER", is_primary_key=True, ordinal=1),
    ColumnMeta("managerId", "INTEGER", ordinal=2),
]


def _planner() -> QueryPlanner:
    return QueryPlanner(sqlite.dialect())


def _text(sql: str) -> str:
    return normalize_whitespace(sql).lower()


def test_unknown_sort_falls_back_to_first_column_keeping_direction() -> None:
    plan = _planner().plan(
        ORDERS, COLUMNS, page=PageRequest(2, 50), sort=SortSpec("nope", SortDirection.DESC)
    )
    assert plan.order == SortSpec("id", SortDirection.DESC)
    assert plan.strategy is PaginationStrategy.OFFSET
    text = _text(plan.query_text)
    assert "order by" in text
    assert "limit 50" in text
    assert "offset 50" in text


def test_filters_are_bound_and_unknown_columns_dropped() -> None:
    plan = _planner().plan(
        ORDERS,
        COLUMNS,
        page=PageRequest(),
        filters=[FilterSpec("customer", "ali"), FilterSpec("x; drop table orders", "1")],
    )
    assert plan.filters == [FilterSpec("customer", "ali")]
    assert "%ali%" in plan.parameters.values()
    assert "drop" not in _text(plan.query_text)
    assert "like '%ali%'" in _text(plan.query_text)


def test_non_string_filter_is_cast() -> None:
    plan = _planner().plan(
        ORDERS, COLUMNS, page=PageRequest(), filters=[FilterSpec("amount", "50")]
    )
    assert "cast(" in _text(render_sql(plan.statement, sqlite.dialect()))


def test_pyformat_dialect_renders_single_percent_signs() -> None:
    dialect = pg_psycopg2.dialect()
    plan = QueryPlanner(dialect).plan(
        ORDERS, COLUMNS, page=PageRequest(), filters=[FilterSpec("amount", "5")]
    )
    text = _text(render_sql(plan.statement, dialect))
    assert "like '%5%'" in text
    assert "%%" not in text
    assert "%%" not in plan.query_text
    assert dialect.paramstyle == "pyformat"


def test_non_string_filter_cast_keeps_long_values_on_mssql() -> None:
    dialect = mssql.dialect()
    plan = QueryPlanner(dialect).plan(
        ORDERS, COLUMNS, page=PageRequest(), filters=[FilterSpec("amount", "5")]
    )
    count_sql = _text(render_sql(plan.count_statement, dialect))
    assert "nvarchar(4000)" in count_sql


def test_count_statement_has_filters_without_paging() -> None:
    plan = _planner().plan(
        ORDERS, COLUMNS, page=PageRequest(3, 10), filters=[FilterSpec("customer", "bo")]
    )
    count_sql = _text(render_sql(plan.count_statement, sqlite.dialect()))
    assert "count(*)" in count_sql
    assert "like '%bo%'" in count_sql
    assert "limit" not in count_sql
    assert "order by" not in count_sql


def test_no_columns_uses_row_number_with_constant_order() -> None:
    plan = _planner().plan(ORDERS, [], page=PageRequest(2, 50))
    assert plan.order is None
    assert plan.strategy is PaginationStrategy.ROW_NUMBER
    assert plan.select_list == ["*"]
    text = _text(render_sql(plan.statement, sqlite.dialect()))
    assert "row_number() over (order by (select null))" in text
    assert "rn > 50" in text
    assert "rn <= 100" in text


def test_forced_row_number_orders_window_by_sort() -> None:
    plan = _planner().plan(
        ORDERS,
        COLUMNS,
        page=PageRequest(1, 10),
        sort=SortSpec("amount", SortDirection.DESC),
        strategy=PaginationStrategy.ROW_NUMBER,
    )
    text = _text(render_sql(plan.statement, sqlite.dialect()))
    assert "row_number() over (order by main.orders.amount desc)" in text


def test_key_only_mode_ignores_bindings() -> None:
    plan = _planner().plan(
        TableRef("main", "assignment"),
        ASSIGNMENT_COLUMNS,
        page=PageRequest(),
        bindings=[MANAGER],
        fk_mode=FkDisplayMode.KEY_ONLY,
    )
    assert plan.joins == []
    assert plan.select_list == ["id", "managerId"]
    assert "join" not in _text(plan.query_text)


def test_key_display_mode_adds_left_join() -> None:
    plan = _planner().plan(
        TableRef("main", "assignment"),
        ASSIGNMENT_COLUMNS,
        page=PageRequest(),
        bindings=[MANAGER],
        fk_mode=FkDisplayMode.KEY_DISPLAY,
    )
    assert plan.select_list == ["id", "managerId", "managerId_display"]
    text = _text(plan.query_text)
    assert "left join" in text or "left outer join" in text
    assert "fk_managerid" in text


def test_display_only_mode_drops_key_column() -> None:
    plan = _planner().plan(
        TableRef("main", "assignment"),
        ASSIGNMENT_COLUMNS,
        page=PageRequest(),
        bindings=[MANAGER],
        fk_mode=FkDisplayMode.DISPLAY_ONLY,
    )
    assert plan.select_list == ["id", "managerId_display"]


def test_hidden_fk_column_is_not_joined() -> None:
    plan = _planner().plan(
        TableRef("main", "assignment"),
        ASSIGNMENT_COLUMNS,
        page=PageRequest(),
        bindings=[MANAGER],
        fk_mode=FkDisplayMode.KEY_DISPLAY,
        visible_columns=["id"],
    )
    assert plan.joins == []
    assert plan.select_list == ["id"]

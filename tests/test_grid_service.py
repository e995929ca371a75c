from __future__ import annotations

from typing import Any

import pytest
import sqlalchemy as sa

from datapeek_mcp.grid.constants import (
    Constants,
    FkDisplayMode,
    PaginationStrategy,
    SortDirection,
)
from datapeek_mcp.grid.exceptions import ExecutionError, PlanningError
from datapeek_mcp.grid.execution import ExecutionContext
from datapeek_mcp.grid.models import FilterSpec, PageRequest, SortSpec, TableRef
from datapeek_mcp.grid.planner import QueryPlanner
from datapeek_mcp.grid.shaper import shape_rows
from datapeek_mcp.services.grid_service import GridService

ORDERS = TableRef("main", "orders")
ASSIGNMENT = TableRef("main", "assignment")
RANKED = TableRef("main", "ranked")


def _run_text(engine: sa.Engine, sql: str) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return [dict(row) for row in conn.execute(sa.text(sql)).mappings()]


def test_second_page_of_unsorted_table(
    service: GridService, orders: list[dict[str, Any]]
) -> None:
    result = service.fetch_page(ORDERS, page=2, page_size=50)
    assert result.status == "ok"
    assert [r["id"] for r in result.rows] == list(range(51, 101))
    assert result.total_count == len(orders)
    assert result.total_pages == 3
    assert result.page == 2
    assert result.page_size == 50
    assert result.fk_display_mode == "key-only"
    assert result.foreign_key_displays == {}


def test_default_and_capped_page_size(
    service: GridService, orders: list[dict[str, Any]]
) -> None:
    assert len(service.fetch_page(ORDERS).rows) == 100
    capped = service.fetch_page(ORDERS, page=1, page_size=5000)
    assert capped.page_size == 1000
    assert len(capped.rows) == len(orders)


def test_page_beyond_end_is_empty(service: GridService, orders: list[dict[str, Any]]) -> None:
    result = service.fetch_page(ORDERS, page=9, page_size=50)
    assert result.rows == []
    assert result.total_count == len(orders)


def test_fetch_is_idempotent(service: GridService) -> None:
    first = service.fetch_page(ORDERS, page=2, page_size=25, filters={"customer": "b"})
    second = service.fetch_page(ORDERS, page=2, page_size=25, filters={"customer": "b"})
    assert first.rows == second.rows
    assert first.total_count == second.total_count
    assert first.generated_query_text == second.generated_query_text


def test_sort_desc(service: GridService) -> None:
    result = service.fetch_page(
        ORDERS, page=1, page_size=3, sort=SortSpec("amount", SortDirection.DESC)
    )
    assert [r["id"] for r in result.rows] == [120, 119, 118]


def test_unknown_sort_keeps_direction_and_unknown_filter_is_ignored(
    service: GridService, orders: list[dict[str, Any]]
) -> None:
    result = service.fetch_page(
        ORDERS,
        page=1,
        page_size=5,
        sort=SortSpec("ghost", SortDirection.DESC),
        filters={"ghost": "x"},
    )
    assert [r["id"] for r in result.rows] == [120, 119, 118, 117, 116]
    assert result.total_count == len(orders)
    assert "ghost" not in result.generated_query_text


def test_string_filter_counts_matches(
    service: GridService, orders: list[dict[str, Any]]
) -> None:
    result = service.fetch_page(ORDERS, page=1, page_size=100, filters={"customer": "ali"})
    expected = [o["id"] for o in orders if "ali" in o["customer"].lower()]
    assert result.total_count == len(expected)
    assert [r["id"] for r in result.rows] == expected


def test_non_string_filter(service: GridService, orders: list[dict[str, Any]]) -> None:
    result = service.fetch_page(
        ORDERS, page=1, page_size=1000, filters=[FilterSpec("amount", "50")]
    )
    expected = [o["id"] for o in orders if "50" in str(o["amount"])]
    assert [r["id"] for r in result.rows] == expected


@pytest.mark.parametrize("direction", [SortDirection.ASC, SortDirection.DESC])
def test_offset_and_row_number_agree(service: GridService, direction: SortDirection) -> None:
    kwargs: dict[str, Any] = {
        "page": 3,
        "page_size": 17,
        "sort": SortSpec("amount", direction),
        "filters": {"customer": "o"},
    }
    offset = service.fetch_page(ORDERS, strategy=PaginationStrategy.OFFSET, **kwargs)
    numbered = service.fetch_page(ORDERS, strategy=PaginationStrategy.ROW_NUMBER, **kwargs)
    assert offset.rows == numbered.rows
    assert offset.total_count == numbered.total_count
    assert all(Constants.ROW_NUMBER_COLUMN not in row for row in numbered.rows)


@pytest.mark.parametrize("strategy", list(PaginationStrategy))
def test_column_named_rn_is_kept(service: GridService, strategy: PaginationStrategy) -> None:
    result = service.fetch_page(RANKED, strategy=strategy)
    assert result.rows == [{"id": 1, "rn": 42}, {"id": 2, "rn": 7}]


def test_row_number_without_columns_runs(engine: sa.Engine) -> None:
    context = ExecutionContext(engine)
    plan = QueryPlanner(engine.dialect).plan(ORDERS, [], page=PageRequest(2, 50))
    rows = shape_rows(
        context.run(plan.statement), FkDisplayMode.KEY_ONLY, [], strategy=plan.strategy
    )
    assert len(rows) == 50
    assert all(Constants.ROW_NUMBER_COLUMN not in row for row in rows)
    assert set(rows[0]) == {"id", "customer", "amount"}


@pytest.mark.parametrize("strategy", list(PaginationStrategy))
def test_generated_text_returns_page_rows(
    engine: sa.Engine, service: GridService, strategy: PaginationStrategy
) -> None:
    result = service.fetch_page(
        ORDERS,
        page=2,
        page_size=10,
        sort=SortSpec("amount", SortDirection.DESC),
        filters={"customer": "ali", "amount": "0"},
        strategy=strategy,
    )
    assert result.rows
    assert _run_text(engine, result.generated_query_text) == result.rows


def test_generated_text_with_display_join(engine: sa.Engine, service: GridService) -> None:
    result = service.fetch_page(ASSIGNMENT, fk_mode="key-display")
    assert _run_text(engine, result.generated_query_text) == result.rows


def test_key_only_mode(service: GridService) -> None:
    result = service.fetch_page(ASSIGNMENT, fk_mode="key-only")
    assert result.rows == [
        {"id": 10, "managerId": 1},
        {"id": 11, "managerId": 2},
        {"id": 12, "managerId": None},
    ]


def test_key_display_mode(service: GridService) -> None:
    result = service.fetch_page(ASSIGNMENT, fk_mode="key-display")
    assert result.foreign_key_displays == {"managerId": "name"}
    assert result.fk_display_mode == "key-display"
    assert result.rows == [
        {"id": 10, "managerId": 1, "managerId_display": "Ada"},
        {"id": 11, "managerId": 2, "managerId_display": "Grace"},
        {"id": 12, "managerId": None, "managerId_display": None},
    ]


def test_display_only_mode(service: GridService) -> None:
    result = service.fetch_page(ASSIGNMENT, fk_mode="display-only")
    assert result.rows == [
        {"id": 10, "managerId": "Ada"},
        {"id": 11, "managerId": "Grace"},
        {"id": 12, "managerId": None},
    ]
    assert result.total_count == 3


def test_display_mode_without_display_column(service: GridService) -> None:
    result = service.fetch_page(TableRef("main", "sample"), fk_mode="display-only")
    assert result.foreign_key_displays == {}
    assert result.rows == []


def test_invalid_input_raises_planning_error(service: GridService) -> None:
    with pytest.raises(PlanningError):
        service.fetch_page(ORDERS, page=-1)
    with pytest.raises(PlanningError):
        service.fetch_page(ORDERS, fk_mode="labels")


def test_missing_table_surfaces_execution_error(service: GridService) -> None:
    with pytest.raises(ExecutionError) as info:
        service.fetch_page(TableRef("main", "nope"))
    assert info.value.kind == "generic"


def test_list_tables(service: GridService) -> None:
    names = [(t.schema_name, t.table_name) for t in service.list_tables()]
    assert ("main", "orders") in names
    assert ("main", "assignment") in names
    assert [t.table_name for t in service.list_tables("main")] == [
        "assignment",
        "employee",
        "metric",
        "orders",
        "ranked",
        "sample",
    ]


def test_describe_table(service: GridService) -> None:
    desc = service.describe_table(ASSIGNMENT)
    assert desc.table == "main.assignment"
    by_name = {c.name: c for c in desc.columns}
    assert by_name["id"].is_primary_key is True
    assert by_name["managerId"].referenced_table == "employee"
    assert by_name["managerId"].referenced_column == "id"
    assert by_name["id"].referenced_table is None


def test_lookup_display_values(service: GridService) -> None:
    result = service.lookup_display_values(ASSIGNMENT, "managerId", ["1", 2, 99])
    assert result.display_column == "name"
    assert result.values == {"1": "Ada", "2": "Grace"}


def test_lookup_display_values_rejects_bad_input(service: GridService) -> None:
    with pytest.raises(PlanningError, match="at least one"):
        service.lookup_display_values(ASSIGNMENT, "managerId", [])
    with pytest.raises(PlanningError, match="not found on main.assignment"):
        service.lookup_display_values(ASSIGNMENT, "manager_id; --", [1])
    with pytest.raises(PlanningError, match="not a foreign key"):
        service.lookup_display_values(ASSIGNMENT, "id", [1])

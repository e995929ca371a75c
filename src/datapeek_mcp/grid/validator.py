"""Identifier validation for caller-supplied column names.

Column names from sort, filter and visible-column requests are only ever
placed into generated SQL after they are confirmed to exist on the table.
Unknown names are never errors: sort falls back to the first column and
filters or visible columns naming unknown columns are dropped.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from fastmcp.utilities.logging import get_logger

from .catalog import SchemaCatalog
from .constants import SortDirection
from .models import ColumnMeta, FilterSpec, SortSpec, TableRef

_logger = get_logger(__name__)


class IdentifierValidator:
    """Confirms candidate column names against the catalog."""

    def __init__(self, catalog: SchemaCatalog) -> None:
        self.catalog = catalog

    def validate(self, table: TableRef, candidate: str) -> bool:
        """Return True when ``candidate`` is a column of ``table``. Never raises for misses."""
        return candidate in self.validate_many(table, [candidate])

    def validate_many(self, table: TableRef, candidates: Iterable[str]) -> set[str]:
        """Return the subset of candidates that exist on the table (one catalog lookup)."""
        wanted = set(candidates)
        if not wanted:
            return set()
        known = known_names(self.catalog.get_columns(table))
        return wanted & known


def known_names(columns: Sequence[ColumnMeta]) -> set[str]:
    return {c.name for c in columns}


def filter_known(columns: Sequence[ColumnMeta], filters: Iterable[FilterSpec]) -> list[FilterSpec]:
    """Drop filters whose column is not on the table."""
    names = known_names(columns)
    kept: list[FilterSpec] = []
    for spec in filters:
        if spec.column in names:
            kept.append(spec)
        else:
            _logger.debug("Dropping filter on unknown column %r", spec.column)
    return kept


def visible_known(
    columns: Sequence[ColumnMeta], visible: Iterable[str] | None
) -> list[ColumnMeta]:
    """Restrict columns to the visible set, keeping ordinal order.

    Unknown names are ignored; an empty or missing set means every column.
    """
    if not visible:
        return list(columns)
    wanted = set(visible)
    kept = [c for c in columns if c.name in wanted]
    return kept or list(columns)


def effective_sort(columns: Sequence[ColumnMeta], sort: SortSpec | None) -> SortSpec | None:
    """Resolve the sort actually applied to the query.

    A validated sort is used as requested. Otherwise the first column by
    ordinal is sorted in the requested direction, ascending when no sort was
    given. Returns None when the table has no known columns.
    """
    if sort is not None and sort.column in known_names(columns):
        return sort
    if sort is not None:
        _logger.debug("Sort column %r not found; falling back to first column", sort.column)
    if not columns:
        return None
    first = min(columns, key=lambda c: c.ordinal)
    direction = sort.direction if sort is not None else SortDirection.ASC
    return SortSpec(column=first.name, direction=direction)

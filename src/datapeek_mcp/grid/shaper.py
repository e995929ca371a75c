"""Result shaping per foreign-key display mode."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import datetime as dt
from decimal import Decimal
from typing import Any

from .constants import Constants, FkDisplayMode, PaginationStrategy
from .models import DisplayBinding


def to_cell_value(val: object) -> str | int | float | bool | None:
    """Convert a database value to a JSON-safe scalar."""
    if val is None or isinstance(val, bool | int | float | str):
        return val
    if isinstance(val, dt.date | dt.time):
        return val.isoformat()
    if isinstance(val, Decimal):
        return str(val)
    if isinstance(val, bytes | bytearray | memoryview):
        return "0x" + bytes(val).hex()
    return str(val)


def shape_rows(
    rows: Iterable[Mapping[str, Any]],
    fk_mode: FkDisplayMode,
    bindings: Sequence[DisplayBinding],
    *,
    strategy: PaginationStrategy = PaginationStrategy.OFFSET,
) -> list[dict[str, Any]]:
    """Post-process raw rows into the caller's grid shape.

    key-only and key-display rows pass through as planned. In display-only
    mode each bound key column is removed and its ``<column>_display`` value
    takes the key column's name. Under row-number paging the helper column
    is stripped. Input rows are not mutated.
    """
    shaped: list[dict[str, Any]] = []
    for raw in rows:
        row = dict(raw)
        if strategy is PaginationStrategy.ROW_NUMBER:
            row.pop(Constants.ROW_NUMBER_COLUMN, None)
        if fk_mode is FkDisplayMode.DISPLAY_ONLY:
            for binding in bindings:
                row.pop(binding.fk_column, None)
                if binding.display_label in row:
                    row[binding.fk_column] = row.pop(binding.display_label)
        shaped.append(row)
    return shaped

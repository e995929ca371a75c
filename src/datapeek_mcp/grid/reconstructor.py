"""Saved-query text reconstruction.

The grid lets a user save the current view (visible columns, sort,
filters, foreign-key mode and page) as a reusable query. The text is
rebuilt from the same structured plan used for execution rather than by
editing a previous rendering, so it always matches what the grid shows.
"""

from __future__ import annotations

from collections.abc import Sequence

from fastmcp.utilities.logging import get_logger

from datapeek_mcp.sqlglot_tools import normalize_whitespace

from .models import ColumnMeta, DisplayBinding, GridState
from .planner import QueryPlanner

_logger = get_logger(__name__)


class QueryTextReconstructor:
    """Re-renders grid state as query text."""

    def __init__(self, planner: QueryPlanner) -> None:
        self.planner = planner

    def reconstruct(
        self,
        previous_text: str | None,
        state: GridState,
        columns: Sequence[ColumnMeta],
        bindings: Sequence[DisplayBinding],
    ) -> str:
        """Return query text equivalent to the grid state.

        Args:
            previous_text: Text produced for an earlier state; returned
                unchanged when it is equivalent to the new rendering
            state: Current grid view
            columns: Catalog snapshot of the table's columns
            bindings: Foreign-key display bindings for the table

        Returns:
            Literal SQL text for the current grid view
        """
        plan = self.planner.plan(
            state.table,
            columns,
            page=state.page,
            sort=state.sort,
            filters=state.filters,
            bindings=bindings,
            fk_mode=state.fk_mode,
            visible_columns=state.visible_columns,
        )
        if previous_text and normalize_whitespace(previous_text) == normalize_whitespace(
            plan.query_text
        ):
            return previous_text

        _logger.debug(
            "Rebuilt saved query for %s (page=%d, mode=%s)",
            state.table,
            state.page.page,
            state.fk_mode.value,
        )
        return plan.query_text

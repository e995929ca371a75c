"""Foreign-key display resolution.

For every foreign key on a table this module picks a column of the
referenced table that a human would recognize (a name, title, code...),
so the grid can show it next to or instead of the raw key.

The choice is a heuristic. It is exposed as a pluggable strategy because
the right column is a product decision per schema; the default strategy
prefers well-known column names and falls back to the first string column.

Classes:
- DisplayColumnStrategy: Protocol for choosing a display column
- PreferredNameStrategy: Default name-then-string-type heuristic
- ForeignKeyResolver: Builds DisplayBindings with batched metadata lookups
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from .catalog import SchemaCatalog
from .constants import Constants
from .models import ColumnMeta, DisplayBinding, ForeignKeyEdge, TableRef
from .validator import known_names

_logger = get_logger(__name__)


class DisplayColumnStrategy(Protocol):
    """Chooses the display column for one foreign-key edge."""

    def choose(self, edge: ForeignKeyEdge, referenced_columns: Sequence[ColumnMeta]) -> str | None:
        """Return a column name of the referenced table, or None for no display."""
        ...


class PreferredNameStrategy:
    """Pick a well-known label column, else the first string-typed column.

    Args:
        preferred_names: Candidate names in priority order, compared
            case-insensitively
    """

    def __init__(
        self, preferred_names: Sequence[str] = Constants.PREFERRED_DISPLAY_NAMES
    ) -> None:
        self.preferred_names = tuple(preferred_names)

    def choose(self, edge: ForeignKeyEdge, referenced_columns: Sequence[ColumnMeta]) -> str | None:
        by_lower: dict[str, str] = {}
        for col in referenced_columns:
            by_lower.setdefault(col.name.lower(), col.name)
        for preferred in self.preferred_names:
            found = by_lower.get(preferred.lower())
            if found is not None:
                return found

        ordered = sorted(referenced_columns, key=lambda c: c.ordinal)
        for col in ordered:
            if col.is_string:
                return col.name
        return None


class ForeignKeyResolver:
    """Resolves display bindings for every foreign key of a table.

    Column metadata for all distinct referenced tables is fetched with a
    single batched catalog call, regardless of how many foreign keys the
    table declares.
    """

    def __init__(
        self, catalog: SchemaCatalog, strategy: DisplayColumnStrategy | None = None
    ) -> None:
        self.catalog = catalog
        self.strategy = strategy or PreferredNameStrategy()

    def resolve(
        self, table: TableRef, columns: Sequence[ColumnMeta] | None = None
    ) -> list[DisplayBinding]:
        """Return one binding per foreign key that has a usable display column.

        Args:
            table: Table whose foreign keys are resolved
            columns: The table's columns when already fetched; edges whose
                key column is not among them are skipped
        """
        edges = self.catalog.get_foreign_keys(table)
        if columns is not None:
            names = known_names(columns)
            edges = [e for e in edges if e.fk_column in names]
        if not edges:
            return []

        # A column can only be joined once; keep the first constraint naming it
        first_by_column: dict[str, ForeignKeyEdge] = {}
        for edge in edges:
            first_by_column.setdefault(edge.fk_column, edge)
        unique_edges = list(first_by_column.values())

        referenced = self.catalog.get_columns_batch(e.referenced for e in unique_edges)
        bindings: list[DisplayBinding] = []
        for edge in unique_edges:
            display = self.strategy.choose(edge, referenced.get(edge.referenced, []))
            if display is None:
                _logger.debug(
                    "No display column for %s -> %s; rendering key only",
                    edge.fk_column,
                    edge.referenced,
                )
                continue
            bindings.append(DisplayBinding(edge=edge, display_column=display))

        _logger.info(
            "Resolved %d of %d foreign key display column(s) for %s",
            len(bindings),
            len(unique_edges),
            table,
        )
        return bindings

"""Constants and enums for the table grid.

This module contains the fixed limits, naming conventions, and enumeration
definitions shared by the planner, resolver, and shaper.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class Constants:
    """Configuration constants for the table grid."""

    # Paging
    DEFAULT_PAGE_SIZE: Final[int] = 100
    MAX_PAGE_SIZE: Final[int] = 1000

    # Naming of generated relations and columns
    BASE_ALIAS: Final[str] = "t"
    ROW_NUMBER_COLUMN: Final[str] = "__datapeek_rn"
    COUNT_LABEL: Final[str] = "total"
    FK_ALIAS_PREFIX: Final[str] = "fk_"
    DISPLAY_SUFFIX: Final[str] = "_display"

    # Display column heuristic, in priority order
    PREFERRED_DISPLAY_NAMES: Final[tuple[str, ...]] = ("name", "title", "description", "code")
    STRING_TYPE_HINTS: Final[tuple[str, ...]] = (
        "varchar",
        "nvarchar",
        "char",
        "nchar",
        "text",
        "ntext",
    )

    # Filters on non-string columns compare against this text length
    FILTER_CAST_LENGTH: Final[int] = 4000

    # Execution error markers (lowercase substrings of driver messages); auth wins over timeout
    TIMEOUT_MARKERS: Final[tuple[str, ...]] = (
        "timed out",
        "timeout expired",
        "timeout exceeded",
        "query timeout",
        "statement timeout",
        "etimedout",
        "etimeout",
        "esocket",
        "request failed to complete",
        "execution time exceeded",
    )
    AUTH_MARKERS: Final[tuple[str, ...]] = (
        "login failed",
        "authentication",
        "access denied",
    )
    TIMEOUT_HINT: Final[str] = (
        "The query took too long to execute. Try disabling foreign key displays "
        "or reducing the page size."
    )


class FkDisplayMode(Enum):
    """How foreign-key columns are presented in the grid."""

    KEY_ONLY = "key-only"  # Raw key value only
    KEY_DISPLAY = "key-display"  # Key plus a separate <column>_display value
    DISPLAY_ONLY = "display-only"  # Display value under the key column's name

    @property
    def needs_joins(self) -> bool:
        return self is not FkDisplayMode.KEY_ONLY


class PaginationStrategy(Enum):
    """Paging technique chosen by the planner."""

    OFFSET = "offset"  # ORDER BY ... OFFSET/LIMIT
    ROW_NUMBER = "row-number"  # Derived table filtered on ROW_NUMBER()


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"

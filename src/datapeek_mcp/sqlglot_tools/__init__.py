"""SQLGlot-backed formatting helpers.

Provides a typed service wrapper around sqlglot used to render the grid's
generated query text. Implementation is pure and dependency-injected for
easy testing.
"""

from __future__ import annotations

from .models import Dialect, SqlFormatRequest, SqlFormatResult
from .service import SqlglotService, map_sqlalchemy_to_sqlglot, normalize_whitespace

__all__ = [
    "Dialect",
    "SqlFormatRequest",
    "SqlFormatResult",
    "SqlglotService",
    "map_sqlalchemy_to_sqlglot",
    "normalize_whitespace",
]

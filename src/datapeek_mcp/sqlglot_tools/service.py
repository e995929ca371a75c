"""Sqlglot service layer for rendering human-readable query text.

All methods are side-effect-free and designed for unit testing.
"""

from __future__ import annotations

import logging
import re

import sqlglot
from sqlglot.errors import SqlglotError

from .models import Dialect, SqlFormatRequest, SqlFormatResult

SQLALCHEMY_TO_SQLGLOT: dict[str, Dialect] = {
    "postgresql": "postgres",
    "postgres": "postgres",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "mssql": "tsql",
    "sqlserver": "tsql",
    "oracle": "oracle",
    "snowflake": "snowflake",
    "bigquery": "bigquery",
}

_WHITESPACE = re.compile(r"\s+")


def map_sqlalchemy_to_sqlglot(sa_dialect_name: str) -> Dialect:
    """Map a SQLAlchemy dialect name to a sqlglot dialect literal.

    Falls back to generic "sql" when unknown.
    """
    return SQLALCHEMY_TO_SQLGLOT.get(sa_dialect_name.lower(), "sql")


def normalize_whitespace(sql: str) -> str:
    """Collapse runs of whitespace so two renderings can be compared."""
    return _WHITESPACE.sub(" ", sql).strip()


class SqlglotService:
    """Typed wrapper around sqlglot formatting.

    Methods avoid raising on unparseable SQL and instead return the input
    unchanged with the parse error attached.
    """

    def __init__(
        self, default_dialect: Dialect = "sql", logger: logging.Logger | None = None
    ) -> None:
        self.default_dialect = default_dialect
        self._logger = logger or logging.getLogger(__name__)

    def format(self, req: SqlFormatRequest) -> SqlFormatResult:
        """Pretty-print SQL in its own dialect."""
        try:
            out = sqlglot.transpile(req.sql, read=req.dialect, write=req.dialect, pretty=True)
        except SqlglotError as e:
            self._logger.debug("Format failed: %s", e)
            return SqlFormatResult(
                sql=req.sql,
                formatted=False,
                error_message=f"SQL parsing error: {e}",
                target_dialect=req.dialect,
            )
        if not out:
            return SqlFormatResult(
                sql=req.sql,
                formatted=False,
                error_message="Formatting returned empty result",
                target_dialect=req.dialect,
            )
        return SqlFormatResult(sql=out[0], formatted=True, target_dialect=req.dialect)

"""Typed Pydantic models for sqlglot formatting.

These models are intentionally small and focused on the saved-query text.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# Keep a pragmatic set of supported dialects commonly used in this project.
Dialect = Literal[
    "sql",
    "postgres",
    "mysql",
    "sqlite",
    "tsql",
    "oracle",
    "snowflake",
    "bigquery",
]


class SqlFormatRequest(BaseModel):
    """Request to pretty-print SQL for a dialect."""

    sql: str = Field(description="SQL string to format")
    dialect: Dialect = Field(description="Dialect used for both parsing and output")


class SqlFormatResult(BaseModel):
    """Formatted SQL, or the original text when it could not be parsed."""

    sql: str = Field(description="Pretty-printed SQL or the input unchanged")
    formatted: bool = Field(description="True when sqlglot parsed and re-rendered the SQL")
    error_message: str | None = Field(default=None, description="Parse error if formatting failed")
    target_dialect: Dialect = Field(description="Dialect used for output")

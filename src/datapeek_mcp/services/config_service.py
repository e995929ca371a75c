"""Configuration service for datapeek-mcp.

This module provides configuration management and database connection
utilities. It centralizes environment variable handling and engine
creation.
"""

from __future__ import annotations

import os

import sqlalchemy as sa

from datapeek_mcp.grid.constants import Constants, FkDisplayMode
from datapeek_mcp.grid.execution import ExecutionLimits


def _int_env(name: str, default: int) -> int:
    val = os.getenv(name, str(default))
    try:
        return int(val)
    except ValueError:
        return default


class ConfigService:
    """Service for managing configuration and database connections."""

    @staticmethod
    def get_database_url() -> str:
        """Get database URL from environment variable.

        Returns:
            Database URL string

        Raises:
            ValueError: If DATAPEEK_MCP_DATABASE_URL environment variable is not set
        """
        database_url = os.getenv("DATAPEEK_MCP_DATABASE_URL")
        if not database_url:
            error_msg = "DATAPEEK_MCP_DATABASE_URL environment variable not set"
            raise ValueError(error_msg)
        return database_url

    @staticmethod
    def create_database_engine(url: str) -> sa.Engine:
        """Create SQLAlchemy database engine.

        Args:
            url: Database connection URL

        Returns:
            SQLAlchemy Engine instance
        """
        return sa.create_engine(url, pool_pre_ping=True)

    # ---- Grid defaults -----------------------------------------------------
    @staticmethod
    def default_page_size() -> int:
        """Rows per page when the caller does not ask for a size."""
        size = _int_env("DATAPEEK_MCP_DEFAULT_PAGE_SIZE", Constants.DEFAULT_PAGE_SIZE)
        return min(max(1, size), Constants.MAX_PAGE_SIZE)

    @staticmethod
    def statement_timeout_sec() -> int:
        """Server-side statement timeout in seconds; 0 disables it."""
        return max(0, _int_env("DATAPEEK_MCP_STATEMENT_TIMEOUT_SEC", 30))

    @staticmethod
    def default_fk_display_mode() -> FkDisplayMode:
        """Foreign-key display mode used when the caller does not choose one."""
        raw = os.getenv("DATAPEEK_MCP_FK_DISPLAY_MODE", FkDisplayMode.KEY_ONLY.value)
        try:
            return FkDisplayMode(raw.strip().lower())
        except ValueError:
            return FkDisplayMode.KEY_ONLY

    @staticmethod
    def result_row_limit() -> int:
        """Maximum rows returned by execute_query."""
        return max(1, _int_env("DATAPEEK_MCP_RESULT_ROW_LIMIT", Constants.MAX_PAGE_SIZE))

    @staticmethod
    def execution_limits() -> ExecutionLimits:
        return ExecutionLimits(statement_timeout_sec=ConfigService.statement_timeout_sec())

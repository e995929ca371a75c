"""FastMCP server implementation for datapeek-mcp."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import dotenv
from fastmcp import FastMCP
from fastmcp.utilities.logging import get_logger
from sqlalchemy.exc import SQLAlchemyError
from starlette.requests import Request
from starlette.responses import JSONResponse

from datapeek_mcp.execute.mcp_tools import register_execute_tools
from datapeek_mcp.grid.exceptions import ExecutionError
from datapeek_mcp.grid.mcp_tools import register_grid_tools
from datapeek_mcp.services.connection_manager import ConnectionManager

# Load environment variables
dotenv.load_dotenv()

# Configure a module-level logger for local server logs.
_logger = get_logger(__name__)

# One database target per server instance
manager = ConnectionManager()


# -- Context Manager for the database connection ----------------------------
@asynccontextmanager
async def lifespan(_mcp_instance: FastMCP) -> AsyncGenerator[None]:
    """FastMCP lifespan context manager for the database connection."""
    try:
        _logger.info("Connecting to configured database during lifespan startup")
        manager.connect_from_env()
    except (ExecutionError, SQLAlchemyError):
        _logger.exception("Could not connect to configured database")
    try:
        yield
    finally:
        _logger.info("Disconnecting database during lifespan shutdown")
        manager.disconnect()


# Create the main MCP server instance with lifespan
mcp = FastMCP(
    instructions=(
        "This provides a table browsing Model Context Protocol server: list tables, "
        "inspect columns, and fetch paginated, sortable, filterable rows with "
        "human-readable foreign-key values, plus query text for saving a view and "
        "read-only execution of saved SELECT queries."
    ),
    lifespan=lifespan,
)

# -- Tool Registration -------------------------------------------------------
register_grid_tools(mcp, manager)
register_execute_tools(mcp, manager)


# -- Health Check ----------------------------------------------------------
@mcp.custom_route("/health", methods=["GET"])
async def health_check(_request: Request) -> JSONResponse:
    return JSONResponse(
        {"status": "healthy", "service": "mcp-server", "connected": manager.is_connected}
    )

"""Services package for datapeek-mcp.

This package contains service classes that handle orchestration for the
datapeek-mcp application, coordinating the grid modules with the database
connection.

Main Components:
- ConfigService: Configuration and database engine creation
- ConnectionManager: Owns the active database target
- GridService: Grid page, saved-query and lookup orchestration
"""

from .config_service import ConfigService
from .connection_manager import ConnectionManager
from .grid_service import GridService

__all__ = [
    "ConfigService",
    "ConnectionManager",
    "GridService",
]

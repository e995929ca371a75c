"""Connection manager for datapeek-mcp.

Owns the single active database target of a server instance. Each request
asks the manager for an ExecutionContext (or a GridService built on one);
the manager itself is an ordinary object created by the server and passed
to the tools, so tests can run several managers with separate engines.
"""

from __future__ import annotations

from collections.abc import Callable
import threading

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from datapeek_mcp.grid.exceptions import NotConnectedError, classify_execution_error
from datapeek_mcp.grid.execution import ExecutionContext, ExecutionLimits
from datapeek_mcp.services.config_service import ConfigService
from datapeek_mcp.services.grid_service import GridService


class ConnectionManager:
    """Holds at most one connected engine at a time.

    Attributes:
        limits: Execution bounds handed to every context
        default_page_size: Page size for services built by the manager
    """

    def __init__(
        self,
        *,
        limits: ExecutionLimits | None = None,
        default_page_size: int | None = None,
        engine_factory: Callable[[str], sa.Engine] = ConfigService.create_database_engine,
    ) -> None:
        self.limits = limits or ConfigService.execution_limits()
        self.default_page_size = default_page_size or ConfigService.default_page_size()
        self._engine_factory = engine_factory
        self._engine: sa.Engine | None = None
        self._lock = threading.Lock()
        self._logger = get_logger(__name__)

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str | None:
        engine = self._engine
        return engine.dialect.name if engine is not None else None

    def connect(self, url: str) -> None:
        """Replace the active target with a new engine after a test connection.

        Raises:
            ExecutionError: If the database cannot be reached; classified as
                AuthenticationError for credential failures
        """
        engine = self._engine_factory(url)
        try:
            with engine.connect():
                pass
        except SQLAlchemyError as exc:
            engine.dispose()
            self._logger.warning("Connection test failed: %s", exc)
            raise classify_execution_error(exc) from exc
        self.attach(engine)
        self._logger.info("Connected to %s database", engine.dialect.name)

    def attach(self, engine: sa.Engine) -> None:
        """Make an existing engine the active target, disposing any previous one."""
        with self._lock:
            previous, self._engine = self._engine, engine
        if previous is not None and previous is not engine:
            previous.dispose()

    def connect_from_env(self) -> bool:
        """Connect using DATAPEEK_MCP_DATABASE_URL when it is set."""
        try:
            url = ConfigService.get_database_url()
        except ValueError:
            self._logger.info("No database URL configured; waiting for an explicit connection")
            return False
        self.connect(url)
        return True

    def disconnect(self) -> None:
        """Drop the active target. Safe to call when not connected."""
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.dispose()
            self._logger.info("Disconnected from %s database", engine.dialect.name)

    def context(self) -> ExecutionContext:
        """Return an execution context for the active target.

        Raises:
            NotConnectedError: If no database is connected
        """
        engine = self._engine
        if engine is None:
            msg = "Not connected to database"
            raise NotConnectedError(msg)
        return ExecutionContext(engine, self.limits)

    def grid_service(self) -> GridService:
        return GridService(self.context(), default_page_size=self.default_page_size)

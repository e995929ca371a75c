from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import sqlalchemy as sa

from datapeek_mcp.grid.exceptions import (
    AuthenticationError,
    GridError,
    PlanningError,
    QueryTimeoutError,
)
from datapeek_mcp.grid.mcp_tools import run_guarded
from datapeek_mcp.grid.models import TableRef
from datapeek_mcp.models import GridErrorResult, ResultPage
from datapeek_mcp.services.connection_manager import ConnectionManager
from datapeek_mcp.services.grid_service import GridService


class FakeContext:
    def __init__(self) -> None:
        self.errors: list[str] = []

    async def error(self, message: str) -> None:
        self.errors.append(message)


class FakeManager:
    def __init__(self, service: Any = None) -> None:
        self.service = service
        self.disconnects = 0

    def grid_service(self) -> Any:
        return self.service

    def disconnect(self) -> None:
        self.disconnects += 1


def _raising(exc: GridError) -> Callable[[Any], Any]:
    def action(_svc: Any) -> Any:
        raise exc

    return action


def _guard(manager: Any, action: Callable[[Any], Any]) -> tuple[Any, FakeContext]:
    ctx = FakeContext()
    result = asyncio.run(run_guarded(ctx, manager, action))  # type: ignore[arg-type]
    return result, ctx


def test_auth_failure_disconnects() -> None:
    manager = FakeManager()
    result, ctx = _guard(manager, _raising(AuthenticationError("Login failed for user 'x'")))
    assert isinstance(result, GridErrorResult)
    assert result.error_kind == "auth"
    assert manager.disconnects == 1
    assert ctx.errors == ["auth: Login failed for user 'x'"]


def test_timeout_returns_hint_without_disconnect() -> None:
    manager = FakeManager()
    result, ctx = _guard(manager, _raising(QueryTimeoutError("Query timeout expired")))
    assert result.error_kind == "timeout"
    assert any("reducing the page size" in note for note in result.assist_notes)
    assert manager.disconnects == 0
    assert len(ctx.errors) == 1


def test_planning_error_kind() -> None:
    result, _ = _guard(FakeManager(), _raising(PlanningError("page must be >= 1, got -1")))
    assert result.error_kind == "planning"
    assert result.message == "page must be >= 1, got -1"


def test_not_connected_manager() -> None:
    manager = ConnectionManager(default_page_size=10)
    result, ctx = _guard(manager, lambda svc: svc.list_tables())
    assert result.error_kind == "not_connected"
    assert ctx.errors


def test_success_passes_through(engine: sa.Engine) -> None:
    manager = ConnectionManager(default_page_size=5)
    manager.attach(engine)

    def fetch(svc: GridService) -> ResultPage:
        return svc.fetch_page(TableRef("main", "orders"))

    result, ctx = _guard(manager, fetch)
    assert isinstance(result, ResultPage)
    assert len(result.rows) == 5
    assert ctx.errors == []

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from datapeek_mcp.grid.execution import ExecutionContext
from datapeek_mcp.services.grid_service import GridService

CUSTOMERS = ("Alice", "Bob", "Charlie")
ORDER_DATA: list[dict[str, Any]] = [
    {"id": i, "customer": CUSTOMERS[(i - 1) % 3], "amount": i * 10} for i in range(1, 121)
]


def _mk_engine() -> sa.Engine:
    # StaticPool keeps one in-memory database visible to every connection
    return sa.create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def _setup_sqlite(engine: sa.Engine) -> None:
    with engine.begin() as conn:
        conn.execute(
            text("CREATE TABLE orders(id INTEGER PRIMARY KEY, customer TEXT, amount INTEGER)")
        )
        conn.execute(
            text("INSERT INTO orders(id, customer, amount) VALUES (:id, :customer, :amount)"),
            ORDER_DATA,
        )
        conn.execute(text("CREATE TABLE employee(id INTEGER PRIMARY KEY, name VARCHAR(50))"))
        conn.execute(text("INSERT INTO employee(id, name) VALUES (1, 'Ada'), (2, 'Grace')"))
        conn.execute(
            text(
                'CREATE TABLE assignment(id INTEGER PRIMARY KEY, "managerId" INTEGER '
                "REFERENCES employee(id))"
            )
        )
        conn.execute(
            text('INSERT INTO assignment(id, "managerId") VALUES (10, 1), (11, 2), (12, NULL)')
        )
        conn.execute(text("CREATE TABLE metric(id INTEGER PRIMARY KEY, reading REAL)"))
        conn.execute(
            text(
                "CREATE TABLE sample(id INTEGER PRIMARY KEY, metric_id INTEGER "
                "REFERENCES metric(id))"
            )
        )
        conn.execute(text("CREATE TABLE ranked(id INTEGER PRIMARY KEY, rn INTEGER)"))
        conn.execute(text("INSERT INTO ranked(id, rn) VALUES (1, 42), (2, 7)"))


@pytest.fixture
def engine() -> Iterator[sa.Engine]:
    eng = _mk_engine()
    _setup_sqlite(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def orders() -> list[dict[str, Any]]:
    """Rows seeded into the orders table."""
    return [dict(row) for row in ORDER_DATA]


@pytest.fixture
def service(engine: sa.Engine) -> GridService:
    return GridService(ExecutionContext(engine))

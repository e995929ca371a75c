"""Schema catalog adapter.

This module provides the SchemaCatalog class that reads table metadata
through SQLAlchemy's Inspector. It is the grid's only view of the database
schema: column snapshots, foreign-key edges, and a batched lookup of the
columns of several tables at once.

Every call builds a fresh Inspector, so nothing is cached between requests
and a schema change is visible on the next call.

Classes:
- SchemaCatalog: Read-only catalog queries for grid requests
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from fastmcp.utilities.logging import get_logger
import sqlalchemy as sa
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.engine.reflection import Inspector

from .exceptions import classify_execution_error
from .models import ColumnMeta, ForeignKeyEdge, TableRef

_logger = get_logger("datapeek.catalog")


def default_excluded_schemas(dialect_name: str) -> frozenset[str]:
    """Get system schemas hidden from table listings for a dialect."""
    dialect_lower = dialect_name.lower()
    if "postgres" in dialect_lower:
        return frozenset({"information_schema", "pg_catalog", "pg_toast"})
    if "mssql" in dialect_lower:
        return frozenset({"information_schema", "sys", "guest"})
    if "mysql" in dialect_lower or "mariadb" in dialect_lower:
        return frozenset({"information_schema", "mysql", "performance_schema", "sys"})
    return frozenset({"information_schema", "pg_catalog", "sys"})


def _type_name(col_type: Any) -> str:
    """Render a reflected column type as text without a live dialect."""
    try:
        return str(col_type)
    except sa_exc.CompileError:
        return type(col_type).__name__.upper()


def _column_meta(
    raw: dict[str, Any], ordinal: int, pk_cols: Iterable[str] = ()
) -> ColumnMeta:
    col_type = raw["type"]
    length = getattr(col_type, "length", None)
    return ColumnMeta(
        name=raw["name"],
        data_type=_type_name(col_type),
        nullable=bool(raw.get("nullable", True)),
        is_primary_key=raw["name"] in set(pk_cols),
        max_length=length if isinstance(length, int) else None,
        ordinal=ordinal,
    )


class SchemaCatalog:
    """Catalog reads for a single database target.

    Attributes:
        engine: SQLAlchemy engine connected to the database
        exclude_schemas: Schemas hidden from ``list_tables``
    """

    def __init__(self, engine: Engine, exclude_schemas: Iterable[str] | None = None) -> None:
        self.engine = engine
        self.exclude_schemas = (
            frozenset(s.lower() for s in exclude_schemas)
            if exclude_schemas is not None
            else default_excluded_schemas(engine.dialect.name)
        )

    def _inspector(self) -> Inspector:
        try:
            return sa.inspect(self.engine)
        except sa_exc.SQLAlchemyError as exc:
            raise classify_execution_error(exc) from exc

    # ---- columns -----------------------------------------------------------
    def get_columns(self, table: TableRef) -> list[ColumnMeta]:
        """Return the table's columns ordered by ordinal position.

        Unknown tables yield an empty list. Connection-level failures are
        raised as classified execution errors.
        """
        insp = self._inspector()
        try:
            raw_columns = insp.get_columns(table.table, schema=table.schema)
        except sa_exc.NoSuchTableError:
            _logger.debug("Table not found in catalog: %s", table)
            return []
        except sa_exc.SQLAlchemyError as exc:
            raise classify_execution_error(exc) from exc

        try:
            pk = insp.get_pk_constraint(table.table, schema=table.schema)
            pk_cols: list[str] = pk.get("constrained_columns", []) or []
        except sa_exc.NoSuchTableError:
            pk_cols = []
        except sa_exc.SQLAlchemyError as exc:
            raise classify_execution_error(exc) from exc

        return [_column_meta(raw, i, pk_cols) for i, raw in enumerate(raw_columns, start=1)]

    def get_columns_batch(self, tables: Iterable[TableRef]) -> dict[TableRef, list[ColumnMeta]]:
        """Return columns for several tables in one reflection call per schema.

        Primary-key flags are not populated; callers that need them use
        ``get_columns``. Tables missing from the catalog map to an empty list.
        """
        by_schema: dict[str | None, list[TableRef]] = defaultdict(list)
        for ref in dict.fromkeys(tables):
            by_schema[ref.schema].append(ref)

        out: dict[TableRef, list[ColumnMeta]] = {}
        if not by_schema:
            return out

        insp = self._inspector()
        for schema, refs in by_schema.items():
            names = [ref.table for ref in refs]
            try:
                multi = insp.get_multi_columns(schema=schema, filter_names=names)
            except sa_exc.SQLAlchemyError as exc:
                raise classify_execution_error(exc) from exc

            found = {key[1]: cols for key, cols in multi.items()}
            for ref in refs:
                raw_columns = found.get(ref.table, [])
                out[ref] = [_column_meta(raw, i) for i, raw in enumerate(raw_columns, start=1)]
            _logger.debug(
                "Batched column lookup for schema %s: %d table(s)", schema or "<default>", len(refs)
            )
        return out

    # ---- foreign keys ------------------------------------------------------
    def get_foreign_keys(self, table: TableRef) -> list[ForeignKeyEdge]:
        """Return one edge per foreign-key column pair of the table."""
        insp = self._inspector()
        try:
            constraints = insp.get_foreign_keys(table.table, schema=table.schema)
        except sa_exc.NoSuchTableError:
            return []
        except sa_exc.SQLAlchemyError as exc:
            raise classify_execution_error(exc) from exc

        edges: list[ForeignKeyEdge] = []
        for fk in constraints:
            ref_schema = fk.get("referred_schema") or table.schema
            ref_table = fk.get("referred_table")
            if not ref_table:
                continue
            constrained = fk.get("constrained_columns", [])
            referred = fk.get("referred_columns", [])
            for local_col, ref_col in zip(constrained, referred, strict=False):
                edges.append(
                    ForeignKeyEdge(
                        fk_column=local_col,
                        referenced_schema=ref_schema,
                        referenced_table=ref_table,
                        referenced_column=ref_col,
                    )
                )
        return edges

    # ---- browsing ----------------------------------------------------------
    def list_tables(self, schema: str | None = None) -> list[TableRef]:
        """List base tables, either in one schema or across non-system schemas."""
        insp = self._inspector()
        try:
            if schema is not None:
                schemas = [schema]
            else:
                schemas = [
                    s for s in insp.get_schema_names() if s.lower() not in self.exclude_schemas
                ]
            refs: list[TableRef] = []
            for name in sorted(schemas):
                refs.extend(
                    TableRef(schema=name, table=t) for t in sorted(insp.get_table_names(schema=name))
                )
        except sa_exc.SQLAlchemyError as exc:
            raise classify_execution_error(exc) from exc
        return refs

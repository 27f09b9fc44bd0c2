"""Persistence store used by the authorization service.

The service only needs four operations from its store, described by the
``Store`` protocol. ``DatabaseStore`` implements them on top of the
SQLAlchemy tables in ``authorize.models``.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, Union, runtime_checkable

from loguru import logger
from sqlalchemy import Table, and_, delete, insert, text
from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreError
from .models import Base, DatabaseManager


@runtime_checkable
class Store(Protocol):
    def fetch_value(self, query: str, **params: Any) -> Any: ...

    def fetch_group(
        self,
        key_column: Optional[str],
        value_column: str,
        query: str,
        **params: Any,
    ) -> Union[Dict[Any, Any], List[Any]]: ...

    def insert(self, table: str, values: Sequence[Any]) -> None: ...

    def delete(self, table: str, values: Sequence[Any]) -> None: ...


STORE_METHODS = ("fetch_value", "fetch_group", "insert", "delete")


def is_store(candidate: Any) -> bool:
    """Return True if ``candidate`` provides every ``Store`` operation."""
    return all(callable(getattr(candidate, name, None)) for name in STORE_METHODS)


class DatabaseStore:
    """SQLAlchemy-backed store. Every call runs in its own short transaction."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def _table(self, name: str) -> Table:
        table = Base.metadata.tables.get(name)
        if table is None:
            raise StoreError(f"Unknown table: {name}")
        return table

    def fetch_value(self, query: str, **params: Any) -> Any:
        """Return the first column of the first row, or None when no row matches."""
        try:
            with self.db_manager.get_session_context() as session:
                return session.execute(text(query), params).scalar()
        except SQLAlchemyError as e:
            raise StoreError(f"fetch_value failed: {e}") from e

    def fetch_group(
        self,
        key_column: Optional[str],
        value_column: str,
        query: str,
        **params: Any,
    ) -> Union[Dict[Any, Any], List[Any]]:
        """Return ``{key: value}`` rows, or a plain list of values without a key column."""
        try:
            with self.db_manager.get_session_context() as session:
                rows = session.execute(text(query), params).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"fetch_group failed: {e}") from e

        if key_column is None:
            return [row[value_column] for row in rows]
        return {row[key_column]: row[value_column] for row in rows}

    def insert(self, table: str, values: Sequence[Any]) -> None:
        target = self._table(table)
        columns = list(target.columns)
        if len(values) != len(columns):
            raise StoreError(
                f"{table} expects {len(columns)} values, got {len(values)}"
            )

        # A None primary key is assigned by the database
        row = {
            column.name: value
            for column, value in zip(columns, values)
            if not (value is None and column.primary_key)
        }
        try:
            with self.db_manager.get_session_context() as session:
                session.execute(insert(target).values(**row))
        except SQLAlchemyError as e:
            raise StoreError(f"insert into {table} failed: {e}") from e
        logger.debug(f"Inserted into {table}: {row}")

    def delete(self, table: str, values: Sequence[Any]) -> None:
        target = self._table(table)
        columns = list(target.columns)
        if not values or len(values) > len(columns):
            raise StoreError(
                f"{table} accepts 1 to {len(columns)} key values, got {len(values)}"
            )

        condition = and_(*(column == value for column, value in zip(columns, values)))
        try:
            with self.db_manager.get_session_context() as session:
                result = session.execute(delete(target).where(condition))
        except SQLAlchemyError as e:
            raise StoreError(f"delete from {table} failed: {e}") from e
        logger.debug(f"Deleted {result.rowcount} row(s) from {table}")

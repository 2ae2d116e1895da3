"""Dialect adapters for range counting.

An adapter knows three dialect-specific things:

- how to write the counting query for a table and its key columns,
- how to bound one statement's execution time,
- which driver errors mean "the statement ran out of time".

Counting queries use the driver's positional paramstyle and take all start
values (in column order) followed by all end values. A NULL bound matches
every row with a non-NULL key, which is how unbounded sides are expressed
without changing the template.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, ClassVar

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine

from rangesplit.common.exceptions import DialectConfigurationException

_LEADING_SELECT = re.compile(r"^\s*SELECT\b", re.IGNORECASE)


def timeout_millis(timeout: timedelta) -> int:
    """Whole milliseconds in ``timeout``, never less than one."""
    return max(1, int(timeout.total_seconds() * 1000))


class DialectAdapter(ABC):
    """Dialect-specific pieces of range counting."""

    name: ClassVar[str]
    placeholder: ClassVar[str] = "%s"
    identifier_quote: ClassVar[str] = '"'

    def quote_identifier(self, identifier: str) -> str:
        """Quote a possibly schema-qualified identifier."""
        quote = self.identifier_quote
        return ".".join(
            f"{quote}{part.replace(quote, quote * 2)}{quote}"
            for part in identifier.split(".")
        )

    def count_query(
        self,
        table_name: str,
        key_columns: Sequence[str],
        approx_count_threshold: int | None = None,
    ) -> str:
        """Build the counting query template for a range.

        Args:
            table_name: Table to count, optionally schema-qualified.
            key_columns: Partition columns in key order.
            approx_count_threshold: When set, stop counting after this many
                rows; the reported count saturates at the threshold.

        Returns:
            SQL text with ``2 * len(key_columns)`` positional placeholders.

        Raises:
            ValueError: If there are no key columns or the threshold is
                not positive.
        """
        if not key_columns:
            raise ValueError("At least one key column is required")
        if approx_count_threshold is not None and approx_count_threshold <= 0:
            raise ValueError(
                f"Threshold must be positive, got {approx_count_threshold}"
            )

        columns = [self.quote_identifier(c) for c in key_columns]
        if len(columns) == 1:
            key = columns[0]
            params = self.placeholder
        else:
            key = f"({', '.join(columns)})"
            params = f"({', '.join([self.placeholder] * len(columns))})"

        # Comparing against NULL yields NULL, so the fallback decides.
        where = (
            f"COALESCE({key} >= {params}, {key} = {key}) "
            f"AND COALESCE({key} < {params}, {key} = {key})"
        )
        table = self.quote_identifier(table_name)

        if approx_count_threshold is None:
            return f"SELECT COUNT(*) FROM {table} WHERE {where}"
        return (
            f"SELECT COUNT(*) FROM (SELECT 1 FROM {table} WHERE {where} "
            f"LIMIT {int(approx_count_threshold)}) AS bounded_count"
        )

    @abstractmethod
    def statement_timeout(
        self, connection: Connection, query: str, timeout: timedelta
    ) -> Any:
        """Context manager bounding one statement's run time.

        Yields the query text to execute on ``connection``, which may be
        ``query`` rewritten to carry the timeout.
        """

    @abstractmethod
    def is_timeout(self, exc: BaseException) -> bool:
        """Whether a driver error reports a statement timeout."""

    @staticmethod
    def _driver_error(exc: BaseException) -> BaseException:
        return getattr(exc, "orig", None) or exc


class MySQLDialectAdapter(DialectAdapter):
    """MySQL 5.7.8 and later."""

    name = "mysql"
    identifier_quote = "`"

    # ER_QUERY_TIMEOUT, ER_QUERY_INTERRUPTED
    timeout_error_codes: ClassVar[frozenset[int]] = frozenset({3024, 1317})

    @contextmanager
    def statement_timeout(
        self, connection: Connection, query: str, timeout: timedelta
    ) -> Iterator[str]:
        hint = f"SELECT /*+ MAX_EXECUTION_TIME({timeout_millis(timeout)}) */"
        yield _LEADING_SELECT.sub(hint, query, count=1)

    def is_timeout(self, exc: BaseException) -> bool:
        args = getattr(self._driver_error(exc), "args", ())
        return bool(args) and args[0] in self.timeout_error_codes


class MariaDBDialectAdapter(MySQLDialectAdapter):
    name = "mariadb"

    # ER_STATEMENT_TIMEOUT, ER_QUERY_INTERRUPTED
    timeout_error_codes = frozenset({1969, 1317})

    @contextmanager
    def statement_timeout(
        self, connection: Connection, query: str, timeout: timedelta
    ) -> Iterator[str]:
        seconds = timeout_millis(timeout) / 1000
        yield f"SET STATEMENT max_statement_time={seconds} FOR {query}"


class PostgreSQLDialectAdapter(DialectAdapter):
    name = "postgresql"

    query_canceled_sqlstate: ClassVar[str] = "57014"

    @contextmanager
    def statement_timeout(
        self, connection: Connection, query: str, timeout: timedelta
    ) -> Iterator[str]:
        # Scoped to the connection's transaction, which ends with it.
        connection.execute(
            sa.text(f"SET LOCAL statement_timeout = {timeout_millis(timeout)}")
        )
        yield query

    def is_timeout(self, exc: BaseException) -> bool:
        orig = self._driver_error(exc)
        sqlstate = getattr(orig, "pgcode", None) or getattr(
            orig, "sqlstate", None
        )
        return sqlstate == self.query_canceled_sqlstate


class SQLiteDialectAdapter(DialectAdapter):
    """SQLite, timed out through the connection's progress handler."""

    name = "sqlite"
    placeholder = "?"

    # Virtual machine instructions between deadline checks.
    progress_interval: ClassVar[int] = 1000

    @contextmanager
    def statement_timeout(
        self, connection: Connection, query: str, timeout: timedelta
    ) -> Iterator[str]:
        driver_connection = connection.connection.driver_connection
        deadline = time.monotonic() + timeout.total_seconds()

        def past_deadline() -> int:
            return int(time.monotonic() >= deadline)

        driver_connection.set_progress_handler(
            past_deadline, self.progress_interval
        )
        try:
            yield query
        finally:
            driver_connection.set_progress_handler(None, 0)

    def is_timeout(self, exc: BaseException) -> bool:
        return "interrupted" in str(self._driver_error(exc)).lower()


_ADAPTERS: dict[str, type[DialectAdapter]] = {
    adapter.name: adapter
    for adapter in (
        MySQLDialectAdapter,
        MariaDBDialectAdapter,
        PostgreSQLDialectAdapter,
        SQLiteDialectAdapter,
    )
}


def engine_dialect_name(engine: Engine) -> str:
    """Dialect name of an engine, telling MariaDB apart from MySQL."""
    dialect = engine.dialect
    if getattr(dialect, "is_mariadb", False) is True:
        return MariaDBDialectAdapter.name
    return dialect.name


def get_dialect_adapter(dialect_name: str) -> DialectAdapter:
    """Return the adapter for an SQLAlchemy dialect name.

    Raises:
        DialectConfigurationException: If the dialect is not supported.
    """
    try:
        return _ADAPTERS[dialect_name]()
    except KeyError:
        raise DialectConfigurationException(
            dialect_name, sorted(_ADAPTERS)
        ) from None

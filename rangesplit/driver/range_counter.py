"""RangeCounter - resolve the row count of one Range at a time.

Each worker slot owns one RangeCounter. The counter resolves its
data-source handle once, on first use, then for every Range:

1. checks out one connection (released on every exit path),
2. runs the counting query with the range's bounds bound positionally
   (all starts, then all ends) under a per-statement timeout,
3. returns the range with its count, or the range uncounted when the
   failure is transient, or raises when it is not.

Counters share nothing but the engine's connection pool, which the
connection provider owns.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from datetime import timedelta
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from rangesplit.common.exceptions import (
    EmptyCountResultException,
    MalformedCountResultException,
    StatementTimeoutException,
    TransientException,
)
from rangesplit.data_types import CountContext, Range
from rangesplit.driver.dialects import (
    DialectAdapter,
    engine_dialect_name,
    get_dialect_adapter,
)

logger = logging.getLogger(__name__)

ConnectionProvider = Callable[[], Engine]


class RangeCounterConfig(BaseModel):
    """Settings for one RangeCounter.

    Attributes:
        count_query: Counting query template with ``2 * num_columns``
            positional placeholders.
        timeout: Budget for one statement execution. Numbers are read as
            seconds.
        num_columns: Key columns per boundary; ranges of another arity
            are rejected.
        name: Label used in log records.
    """

    model_config = ConfigDict(frozen=True)

    count_query: str = Field(min_length=1)
    timeout: timedelta = timedelta(seconds=2)
    num_columns: int = Field(default=1, ge=1)
    name: str = "range-counter"

    @field_validator("timeout")
    @classmethod
    def _timeout_is_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError(f"timeout must be positive, got {value}")
        return value


class RangeCounter:
    """Counts rows inside Ranges against the source database.

    Calls to ``count`` on one instance must be sequential; run one
    instance per worker for parallelism.

    Example::

        counter = RangeCounter(lambda: engine, RangeCounterConfig(
            count_query=adapter.count_query("orders", ["id"]),
            timeout=timedelta(seconds=2),
        ))
        with counter:
            counted = counter.count(rng)
    """

    def __init__(
        self,
        connection_provider: ConnectionProvider,
        config: RangeCounterConfig,
    ) -> None:
        self.connection_provider = connection_provider
        self.config = config
        self._engine: Engine | None = None
        self._dialect: DialectAdapter | None = None
        self._dialect_confirmed = False
        self._sequence = 0

    @property
    def is_set_up(self) -> bool:
        return self._engine is not None

    def setup(self) -> None:
        """Resolve the data-source handle and dialect adapter.

        Runs once per counter lifetime; later calls are no-ops until
        ``teardown``. The adapter is confirmed again inside the first
        connection, once the server (MySQL or MariaDB) is known.

        Raises:
            DialectConfigurationException: If the engine's dialect has no
                adapter.
        """
        if self._engine is not None:
            return
        engine = self.connection_provider()
        dialect_name = engine_dialect_name(engine)
        self._dialect = get_dialect_adapter(dialect_name)
        self._engine = engine
        self._dialect_confirmed = False
        logger.debug(f"{self.config.name}: set up for dialect {dialect_name}")

    def teardown(self) -> None:
        """Drop the data-source handle. The pool itself is left alone."""
        self._engine = None
        self._dialect = None
        self._dialect_confirmed = False
        logger.debug(f"{self.config.name}: torn down")

    def __enter__(self) -> RangeCounter:
        self.setup()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.teardown()

    def count(self, range_: Range[Any]) -> Range[Any]:
        """Resolve the row count of ``range_``.

        Args:
            range_: The range to count.

        Returns:
            ``range_.with_count(n)`` on success. On a statement timeout,
            ``range_`` with its count cleared. On an empty or NULL result,
            ``range_`` unchanged.

        Raises:
            ValueError: If the range's arity differs from ``num_columns``.
            DBAPIError: For database failures other than timeouts.
            MalformedCountResultException: If the count is not a number.
        """
        if range_.arity != self.config.num_columns:
            raise ValueError(
                f"{self.config.name} counts {self.config.num_columns}-column "
                f"ranges, got {range_.arity} columns for {range_.column_name}"
            )
        self.setup()
        self._sequence += 1
        context = CountContext(self.config.name, self._sequence)

        try:
            count = self._execute_count(range_)
        except StatementTimeoutException as e:
            self._log_transient(range_, context, e)
            return range_.without_count()
        except TransientException as e:
            self._log_transient(range_, context, e)
            return range_

        return range_.with_count(count, context)

    def count_each(self, ranges: Iterable[Range[Any]]) -> Iterator[Range[Any]]:
        """Count ranges one after another, yielding one result per input."""
        for range_ in ranges:
            yield self.count(range_)

    def _execute_count(self, range_: Range[Any]) -> int:
        assert self._engine is not None and self._dialect is not None
        timeout = self.config.timeout

        with self._engine.connect() as connection:
            if not self._dialect_confirmed:
                self._confirm_dialect()
            try:
                with self._dialect.statement_timeout(
                    connection, self.config.count_query, timeout
                ) as query:
                    result = connection.exec_driver_sql(
                        query, range_.bound_values()
                    )
                    try:
                        row = result.fetchone()
                        value = None if row is None else row[0]
                    finally:
                        result.close()
            except DBAPIError as e:
                if self._dialect.is_timeout(e):
                    raise StatementTimeoutException(
                        range_.column_name, timeout.total_seconds()
                    ) from e
                raise

        if row is None:
            raise EmptyCountResultException(range_.column_name, "no row")
        if value is None:
            raise EmptyCountResultException(range_.column_name, "null value")
        return _to_count(range_.column_name, value)

    def _confirm_dialect(self) -> None:
        # SQLAlchemy tells MariaDB from MySQL only once a connection has
        # initialized the dialect.
        assert self._engine is not None and self._dialect is not None
        dialect_name = engine_dialect_name(self._engine)
        if dialect_name != self._dialect.name:
            logger.debug(
                f"{self.config.name}: connected dialect is {dialect_name}"
            )
            self._dialect = get_dialect_adapter(dialect_name)
        self._dialect_confirmed = True

    def _log_transient(
        self,
        range_: Range[Any],
        context: CountContext,
        error: TransientException,
    ) -> None:
        logger.warning(
            f"{context.counter_name}#{context.sequence}: leaving "
            f"{range_.column_name} [{range_.start!r}, {range_.end!r}) "
            f"uncounted: {error}",
            extra={
                "counter": context.counter_name,
                "sequence": context.sequence,
                "range_column": range_.column_name,
                "range_start": range_.start,
                "range_end": range_.end,
                "error_class": type(error).__name__,
            },
        )


def _to_count(column_name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise MalformedCountResultException(column_name, value)
    if isinstance(value, int):
        count = value
    elif isinstance(value, (Decimal, float)):
        try:
            count = int(value)
        except (ValueError, OverflowError) as e:
            raise MalformedCountResultException(column_name, value) from e
        if count != value:
            raise MalformedCountResultException(column_name, value)
    else:
        raise MalformedCountResultException(column_name, value)
    if count < 0:
        raise MalformedCountResultException(column_name, value)
    return count

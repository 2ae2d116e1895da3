"""Test utilities for rangesplit tests.

Builders for ranges and SQLAlchemy-wrapped driver errors, and a MagicMock
wiring of the provider -> engine -> connection -> result chain that
RangeCounter walks.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import sqlalchemy as sa
from sqlalchemy.exc import OperationalError, ProgrammingError

from rangesplit.common.boundary_types import BoundaryType
from rangesplit.common.splitters import create_boundary_splitter
from rangesplit.data_types import Range


class FakeDriverError(Exception):
    """Stand-in for a DBAPI driver exception."""


def driver_error(
    code: int | None = None,
    message: str = "test",
    wrapper: type[sa.exc.DBAPIError] = OperationalError,
    **attributes: object,
) -> sa.exc.DBAPIError:
    """Build a SQLAlchemy-wrapped driver error.

    Args:
        code: MySQL-style numeric error code placed in ``args[0]``.
        message: Driver error message.
        wrapper: SQLAlchemy DBAPIError subclass to wrap the error in.
        **attributes: Extra attributes set on the driver error
            (e.g. ``pgcode``).

    Returns:
        The wrapped error, ready to be raised.
    """
    if code is None:
        orig = FakeDriverError(message)
    else:
        orig = FakeDriverError(code, message)
    for name, value in attributes.items():
        setattr(orig, name, value)
    return wrapper("SELECT COUNT(*)", (), orig)


def mysql_timeout_error() -> sa.exc.DBAPIError:
    return driver_error(
        3024,
        "Query execution was interrupted, maximum statement execution "
        "time exceeded",
    )


def syntax_error() -> sa.exc.DBAPIError:
    return driver_error(
        1064, "You have an error in your SQL syntax", wrapper=ProgrammingError
    )


class MockDatabase:
    """MagicMock wiring of provider -> engine -> connection -> result.

    Attributes:
        provider: Zero-argument connection provider returning ``engine``.
        engine: Mock engine whose ``connect()`` yields ``connection``.
        connection: Mock connection whose ``exec_driver_sql`` returns
            ``result``.
        result: Mock cursor result; tests set ``fetchone`` behaviour.
    """

    def __init__(self, dialect_name: str = "mysql") -> None:
        self.result = MagicMock(name="result")
        self.connection = MagicMock(name="connection")
        self.connection.exec_driver_sql.return_value = self.result
        self.engine = MagicMock(name="engine")
        self.engine.dialect.name = dialect_name
        self.engine.connect.return_value.__enter__.return_value = (
            self.connection
        )
        self.provider = MagicMock(name="provider", return_value=self.engine)

    @property
    def connection_scope(self) -> MagicMock:
        """The context manager returned by ``engine.connect()``."""
        return self.engine.connect.return_value

    def bound_parameters(self) -> list[tuple[object, ...]]:
        """Positional parameters of every counting statement executed."""
        return [
            c.args[1] for c in self.connection.exec_driver_sql.call_args_list
        ]


def build_range(
    boundary_type: BoundaryType,
    start: object,
    end: object,
    column_name: str = "col1",
) -> Range:
    """Build an uncounted range with the factory's splitter."""
    return (
        Range.builder()
        .set_column_name(column_name)
        .set_boundary_type(boundary_type)
        .set_splitter(create_boundary_splitter(boundary_type))
        .set_start(start)
        .set_end(end)
        .build()
    )

"""Shared fixtures for rangesplit tests."""

from __future__ import annotations

from collections.abc import Generator

import pytest
import sqlalchemy as sa
from sqlalchemy.engine import Engine

from rangesplit.common.boundary_types import INT32, INT64, STRING, BoundaryType
from rangesplit.data_types import Range
from tests.utils import MockDatabase, build_range


@pytest.fixture
def mock_db() -> MockDatabase:
    """Mocked MySQL database chain."""
    return MockDatabase()


@pytest.fixture
def int_range() -> Range:
    """Range over ``col1`` with bounds [0, 100)."""
    return build_range(INT32, 0, 100)


@pytest.fixture
def composite_type() -> BoundaryType:
    """Composite (region, id) key type."""
    return BoundaryType.composite(STRING, INT64)


# =============================================================================
# SQLite fixtures
# =============================================================================


@pytest.fixture
def orders_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with an ``orders`` table.

    Rows: ids 0-99 in region 'eu', ids 100-199 in region 'us', plus one
    row with a NULL id.
    """
    engine = sa.create_engine("sqlite://")
    with engine.begin() as connection:
        connection.execute(
            sa.text("CREATE TABLE orders (id INTEGER, region TEXT)")
        )
        connection.execute(
            sa.text("INSERT INTO orders (id, region) VALUES (:id, :region)"),
            [
                {"id": i, "region": "eu" if i < 100 else "us"}
                for i in range(200)
            ],
        )
        connection.execute(
            sa.text("INSERT INTO orders (id, region) VALUES (NULL, 'eu')")
        )
    yield engine
    engine.dispose()

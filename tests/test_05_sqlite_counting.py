"""End-to-end counting against a real SQLite database.

The ``orders`` fixture holds ids 0-99 in region 'eu', ids 100-199 in
region 'us', and one row with a NULL id.
"""

import logging
from datetime import timedelta

import pytest
import sqlalchemy as sa

from rangesplit.common.boundary_types import INT64
from rangesplit.driver.dialects import SQLiteDialectAdapter
from rangesplit.driver.range_counter import RangeCounter, RangeCounterConfig
from tests.utils import build_range

ADAPTER = SQLiteDialectAdapter()


def sqlite_counter(engine, key_columns=("id",), **config) -> RangeCounter:
    count_query = config.pop(
        "count_query", ADAPTER.count_query("orders", list(key_columns))
    )
    return RangeCounter(
        lambda: engine,
        RangeCounterConfig(
            count_query=count_query,
            timeout=config.pop("timeout", timedelta(seconds=5)),
            num_columns=len(key_columns),
            **config,
        ),
    )


class TestSingleColumnCounting:
    @pytest.mark.parametrize(
        ("start", "end", "expected"),
        [
            (0, 100, 100),
            (50, 51, 1),
            (None, 50, 50),
            (150, None, 50),
            (None, None, 200),
            (1000, 2000, 0),
        ],
    )
    def test_counts(self, orders_engine, start, end, expected):
        """Counts shall cover [start, end) and skip NULL keys."""
        rng = build_range(INT64, start, end, "id")

        with sqlite_counter(orders_engine) as counter:
            output = counter.count(rng)

        assert output == rng.with_count(expected)

    def test_threshold_saturates_count(self, orders_engine):
        query = ADAPTER.count_query("orders", ["id"], approx_count_threshold=10)
        rng = build_range(INT64, 0, 100, "id")

        output = sqlite_counter(orders_engine, count_query=query).count(rng)

        assert output.count == 10


class TestCompositeCounting:
    def test_composite_range(self, orders_engine, composite_type):
        """A (region, id) range shall count rows in tuple order."""
        rng = build_range(composite_type, ("eu", 50), ("us", 150), "region,id")

        output = sqlite_counter(
            orders_engine, key_columns=("region", "id")
        ).count(rng)

        assert output.count == 100

    def test_composite_unbounded_end(self, orders_engine, composite_type):
        rng = build_range(composite_type, ("us", 190), None, "region,id")

        output = sqlite_counter(
            orders_engine, key_columns=("region", "id")
        ).count(rng)

        assert output.count == 10


class TestFailureClassification:
    def test_statement_timeout(self, orders_engine, caplog):
        """An interrupted statement shall yield the range uncounted."""
        slow_query = (
            "WITH RECURSIVE seq(x) AS (SELECT 0 UNION ALL "
            "SELECT x + 1 FROM seq WHERE x < 100000000) "
            "SELECT COUNT(*) FROM seq "
            "WHERE COALESCE(x >= ?, x = x) AND COALESCE(x < ?, x = x)"
        )
        rng = build_range(INT64, 0, None, "id")
        counter = sqlite_counter(
            orders_engine,
            count_query=slow_query,
            timeout=timedelta(milliseconds=1),
        )

        with caplog.at_level(logging.WARNING):
            output = counter.count(rng)

        assert output == rng
        assert output.is_uncounted()
        assert any("timed out" in r.getMessage() for r in caplog.records)

        # The expired deadline must not outlive the counting statement.
        with orders_engine.connect() as connection:
            total = connection.execute(
                sa.text("SELECT COUNT(*) FROM orders a, orders b")
            ).scalar_one()
        assert total == 201 * 201

    def test_missing_table_raises(self, orders_engine):
        query = ADAPTER.count_query("no_such_table", ["id"])
        rng = build_range(INT64, 0, 100, "id")

        with pytest.raises(sa.exc.DBAPIError):
            sqlite_counter(orders_engine, count_query=query).count(rng)

    def test_syntax_error_raises(self, orders_engine):
        rng = build_range(INT64, 0, 100, "id")

        with pytest.raises(sa.exc.DBAPIError):
            sqlite_counter(
                orders_engine, count_query="SELEC COUNT(*) FROM orders"
            ).count(rng)

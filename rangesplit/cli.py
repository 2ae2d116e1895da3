"""rangesplit CLI: count rows in one key range of a source table.

Usage:
    rangesplit types                                    # List boundary types
    rangesplit count --url URL --table orders --column id --type int64 \\
        --start 0 --end 1000                            # Count one range
    rangesplit count ... --column region --column id \\
        --type "composite(string,int64)" --start eu,0   # Composite key
"""

from __future__ import annotations

import logging
from typing import Any

import click
import sqlalchemy as sa
from sqlalchemy.exc import DBAPIError

from rangesplit.common.boundary_types import BoundaryTag, BoundaryType
from rangesplit.common.exceptions import (
    MalformedCountResultException,
    RangeConfigurationException,
)
from rangesplit.common.splitters import create_boundary_splitter
from rangesplit.data_types import Range
from rangesplit.driver.dialects import engine_dialect_name, get_dialect_adapter
from rangesplit.driver.range_counter import RangeCounter, RangeCounterConfig


def _parse_bound(
    boundary_type: BoundaryType, text: str | None, option: str
) -> Any:
    if text is None:
        return None
    try:
        return boundary_type.parse_value(text)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=option) from e


@click.group()
@click.version_option(package_name="rangesplit")
def cli() -> None:
    """rangesplit: key-range row counting for parallel table reads."""


@cli.command()
def types() -> None:
    """List the supported boundary types."""
    for tag in BoundaryTag:
        if tag is BoundaryTag.COMPOSITE:
            click.echo("composite(<type>,<type>,...)")
        else:
            click.echo(tag.value)


@cli.command()
@click.option(
    "--url",
    envvar="RANGESPLIT_DATABASE_URL",
    required=True,
    help="SQLAlchemy database URL of the source database.",
)
@click.option("--table", required=True, help="Table to count.")
@click.option(
    "--column",
    "columns",
    multiple=True,
    required=True,
    help="Key column; repeat for composite keys, in key order.",
)
@click.option(
    "--type",
    "type_name",
    required=True,
    help="Boundary type, e.g. int64 or composite(string,int64).",
)
@click.option(
    "--start", default=None, help="Inclusive start (omit: unbounded)."
)
@click.option("--end", default=None, help="Exclusive end (omit: unbounded).")
@click.option(
    "--timeout",
    envvar="RANGESPLIT_TIMEOUT",
    default=2.0,
    show_default=True,
    type=click.FloatRange(min=0, min_open=True),
    help="Statement timeout in seconds.",
)
@click.option(
    "--threshold",
    default=None,
    type=click.IntRange(min=1),
    help="Stop counting after this many rows.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def count(
    url: str,
    table: str,
    columns: tuple[str, ...],
    type_name: str,
    start: str | None,
    end: str | None,
    timeout: float,
    threshold: int | None,
    verbose: bool,
) -> None:
    """Count the rows of TABLE whose key lies in [START, END)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        boundary_type = BoundaryType.parse(type_name)
    except RangeConfigurationException as e:
        raise click.BadParameter(e.message, param_hint="--type") from e
    if boundary_type.arity != len(columns):
        raise click.BadParameter(
            f"{boundary_type} covers {boundary_type.arity} column(s) "
            f"but {len(columns)} were given",
            param_hint="--column",
        )

    try:
        engine = sa.create_engine(url)
    except sa.exc.ArgumentError as e:
        raise click.BadParameter(str(e), param_hint="--url") from e

    try:
        rng = (
            Range.builder()
            .set_column_name(",".join(columns))
            .set_boundary_type(boundary_type)
            .set_splitter(create_boundary_splitter(boundary_type))
            .set_start(_parse_bound(boundary_type, start, "--start"))
            .set_end(_parse_bound(boundary_type, end, "--end"))
            .build()
        )
        adapter = get_dialect_adapter(engine_dialect_name(engine))
        config = RangeCounterConfig(
            count_query=adapter.count_query(table, list(columns), threshold),
            timeout=timeout,
            num_columns=len(columns),
            name="cli",
        )
        with RangeCounter(lambda: engine, config) as counter:
            result = counter.count(rng)
    except RangeConfigurationException as e:
        raise click.ClickException(e.message) from e
    except DBAPIError as e:
        raise click.ClickException(f"Count failed: {e.orig}") from e
    except MalformedCountResultException as e:
        raise click.ClickException(f"Count failed: {e.message}") from e
    finally:
        engine.dispose()

    if result.is_uncounted():
        click.echo("uncounted")
    else:
        click.echo(f"count={result.count}")


if __name__ == "__main__":
    cli()

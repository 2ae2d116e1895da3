"""Data types exchanged between the splitting algorithm and RangeCounter.

A Range is an immutable half-open interval ``[start, end)`` over one
partition column (or one composite key). ``None`` stands for an unbounded
side. Ranges are built by the splitting algorithm, counted by RangeCounter,
and handed back:

1. Immutable - frozen dataclasses; every change yields a new Range
2. Structural equality - including count and count state
3. Type-agnostic - ordering goes through the attached BoundarySplitter
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Generic, TypeVar

from rangesplit.common.boundary_types import BoundaryTag, BoundaryType
from rangesplit.common.exceptions import RangeConstructionException
from rangesplit.common.splitters import BoundarySplitter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CountState(Enum):
    """Resolution state of a Range's row count.

    Values:
        COUNTED: The database reported a count for the range.
        UNCOUNTED: No count yet, or the last attempt failed transiently.
    """

    COUNTED = "counted"
    UNCOUNTED = "uncounted"


@dataclass(frozen=True)
class CountContext:
    """Who resolved a count, for logging.

    Attributes:
        counter_name: Name of the RangeCounter that ran the query.
        sequence: 1-based number of the count() call on that counter.
    """

    counter_name: str
    sequence: int


@dataclass(frozen=True)
class Range(Generic[T]):
    """Half-open interval ``[start, end)`` over a column's value domain.

    Build instances with ``Range.builder()``; direct construction runs the
    same validation.

    Attributes:
        column_name: The partitioned column.
        boundary_type: Descriptor of the boundary values.
        splitter: Ordering/interpolation for ``boundary_type``.
        start: Inclusive lower bound, or None when unbounded.
        end: Exclusive upper bound, or None when unbounded.
        count: Row count, present only when counted.
        count_state: Whether ``count`` has been resolved.
    """

    column_name: str
    boundary_type: BoundaryType
    splitter: BoundarySplitter[T]
    start: T | None
    end: T | None
    count: int | None = None
    count_state: CountState = CountState.UNCOUNTED

    def __post_init__(self) -> None:
        context = {
            "column_name": self.column_name,
            "start": self.start,
            "end": self.end,
        }
        if (self.count is None) != (self.count_state is not CountState.COUNTED):
            raise RangeConstructionException(
                "count must be present exactly when count_state is COUNTED",
                context={
                    **context,
                    "count": self.count,
                    "count_state": self.count_state,
                },
            )
        if self.count is not None:
            _check_count(self.count)
        if self.splitter.boundary_type != self.boundary_type:
            raise RangeConstructionException(
                f"Splitter for {self.splitter.boundary_type} cannot order "
                f"boundaries of type {self.boundary_type}",
                context=context,
            )
        if self.boundary_type.tag is BoundaryTag.COMPOSITE:
            for bound in (self.start, self.end):
                if bound is not None and (
                    not isinstance(bound, tuple)
                    or len(bound) != self.boundary_type.arity
                ):
                    raise RangeConstructionException(
                        f"Composite bounds must be tuples of "
                        f"{self.boundary_type.arity} values",
                        context=context,
                    )
        if (
            self.start is not None
            and self.end is not None
            and self.splitter.compare(self.start, self.end) >= 0
        ):
            raise RangeConstructionException(
                "Range start must be below its end", context=context
            )

    @staticmethod
    def builder() -> RangeBuilder[Any]:
        return RangeBuilder()

    def to_builder(self) -> RangeBuilder[T]:
        """Return a builder pre-filled with this range's fields."""
        return RangeBuilder(
            column_name=self.column_name,
            boundary_type=self.boundary_type,
            splitter=self.splitter,
            start=self.start,
            end=self.end,
            count=self.count,
            count_state=self.count_state,
        )

    @property
    def arity(self) -> int:
        """Number of key columns the bounds cover."""
        return self.boundary_type.arity

    @property
    def has_start(self) -> bool:
        return self.start is not None

    @property
    def has_end(self) -> bool:
        return self.end is not None

    def is_uncounted(self) -> bool:
        """True unless the range holds a resolved count."""
        return self.count_state is not CountState.COUNTED

    def with_count(
        self, count: int, context: CountContext | None = None
    ) -> Range[T]:
        """Return a copy of this range holding ``count``.

        The copy is COUNTED whatever this range's state was.

        Args:
            count: Non-negative row count.
            context: Which counter call produced the count.

        Raises:
            ValueError: If ``count`` is negative or not an integer.
        """
        _check_count(count)
        if context is not None:
            logger.debug(
                f"{context.counter_name}#{context.sequence}: "
                f"{self.column_name} [{self.start!r}, {self.end!r}) "
                f"counted {count}",
                extra={
                    "counter": context.counter_name,
                    "sequence": context.sequence,
                    "range_column": self.column_name,
                    "range_count": count,
                },
            )
        return replace(self, count=count, count_state=CountState.COUNTED)

    def without_count(self) -> Range[T]:
        """Return this range UNCOUNTED, itself if it already is."""
        if self.is_uncounted():
            return self
        return replace(self, count=None, count_state=CountState.UNCOUNTED)

    def bound_values(self) -> tuple[Any, ...]:
        """Positional query parameters for this range.

        All start values in column order, then all end values in column
        order. An unbounded side contributes one ``None`` per column.
        """
        return self._bound_columns(self.start) + self._bound_columns(self.end)

    def _bound_columns(self, bound: T | None) -> tuple[Any, ...]:
        if self.boundary_type.tag is BoundaryTag.COMPOSITE:
            if bound is None:
                return (None,) * self.arity
            return tuple(bound)  # type: ignore[arg-type]
        return (bound,)


def _check_count(count: Any) -> None:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError(f"Count must be an integer, got {count!r}")
    if count < 0:
        raise ValueError(f"Count must be non-negative, got {count}")


_UNSET: Any = object()


@dataclass
class RangeBuilder(Generic[T]):
    """Mutable builder for Range.

    ``column_name``, ``boundary_type``, ``splitter``, ``start`` and ``end``
    are required. ``None`` is a legal explicit bound meaning unbounded, so
    ``start`` and ``end`` must still be set.

    Example::

        rng = (
            Range.builder()
            .set_column_name("id")
            .set_boundary_type(INT64)
            .set_splitter(create_boundary_splitter(INT64))
            .set_start(0)
            .set_end(100)
            .build()
        )
    """

    column_name: str = _UNSET
    boundary_type: BoundaryType = _UNSET
    splitter: BoundarySplitter[T] = _UNSET
    start: T | None = _UNSET
    end: T | None = _UNSET
    count: int | None = None
    count_state: CountState = field(default=CountState.UNCOUNTED)

    def set_column_name(self, column_name: str) -> RangeBuilder[T]:
        self.column_name = column_name
        return self

    def set_boundary_type(self, boundary_type: BoundaryType) -> RangeBuilder[T]:
        self.boundary_type = boundary_type
        return self

    def set_splitter(self, splitter: BoundarySplitter[T]) -> RangeBuilder[T]:
        self.splitter = splitter
        return self

    def set_start(self, start: T | None) -> RangeBuilder[T]:
        self.start = start
        return self

    def set_end(self, end: T | None) -> RangeBuilder[T]:
        self.end = end
        return self

    def set_count(self, count: int | None) -> RangeBuilder[T]:
        """Set the count; a non-None count also marks the range COUNTED."""
        self.count = count
        self.count_state = (
            CountState.UNCOUNTED if count is None else CountState.COUNTED
        )
        return self

    def build(self) -> Range[T]:
        """Build the Range.

        Raises:
            RangeConstructionException: If a required field is missing or
                the values violate a Range invariant.
        """
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        missing = [name for name, value in values.items() if value is _UNSET]
        if missing:
            raise RangeConstructionException(
                "Range is missing required fields", missing_fields=missing
            )
        return Range(**values)

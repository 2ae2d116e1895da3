"""Boundary splitters: ordering and midpoint interpolation per value domain.

Each splitter is a stateless frozen dataclass, equal by value and safe to
share between any number of ranges and threads. They are selected by
``create_boundary_splitter`` from a BoundaryType tag.

Unbounded bounds are passed as ``None``. Fixed-width integer splitters
substitute the domain minimum/maximum for them; every other splitter
returns ``None`` when both bounds are missing and the present bound when
only one is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, localcontext
from functools import lru_cache
from typing import Any, Generic, TypeVar

from rangesplit.common.boundary_types import BoundaryTag, BoundaryType
from rangesplit.common.exceptions import BoundaryConfigurationException

T = TypeVar("T")

# One past the largest Unicode code point.
_CODE_POINT_BASE = 0x110000
_BYTE_BASE = 256
# UTF-16 surrogates, skipped when interpolating strings.
_SURROGATE_LOW = 0xD800
_SURROGATE_HIGH = 0xE000
_SURROGATE_COUNT = _SURROGATE_HIGH - _SURROGATE_LOW


class BoundarySplitter(ABC, Generic[T]):
    """Ordering and interpolation over one boundary type."""

    boundary_type: BoundaryType

    def compare(self, a: T, b: T) -> int:
        """Return a negative number, zero, or a positive number as ``a``
        is below, equal to, or above ``b``."""
        return (a > b) - (a < b)  # type: ignore[operator]

    def split_point(self, start: T | None, end: T | None) -> T | None:
        """Return a representative midpoint of ``[start, end)``.

        For ``start < end`` the result satisfies ``start <= mid < end``;
        ``start`` itself comes back when the two are adjacent.
        """
        if start is None and end is None:
            return None
        if start is None:
            return end
        if end is None:
            return start
        if self.compare(start, end) >= 0:
            return start
        return self._interpolate(start, end)

    @abstractmethod
    def _interpolate(self, start: T, end: T) -> T:
        """Midpoint of two present bounds with ``start < end``."""


@dataclass(frozen=True)
class IntegerSplitter(BoundarySplitter[int]):
    """Integers, fixed-width when both domain limits are set.

    Attributes:
        boundary_type: INT32, INT64 or BIG_INTEGER.
        min_value: Smallest representable value, or None if unlimited.
        max_value: Largest representable value, or None if unlimited.
    """

    boundary_type: BoundaryType
    min_value: int | None = None
    max_value: int | None = None

    def split_point(self, start: int | None, end: int | None) -> int | None:
        if start is None and self.min_value is not None:
            start = self.min_value
        if end is None and self.max_value is not None:
            end = self.max_value
        return super().split_point(start, end)

    def _interpolate(self, start: int, end: int) -> int:
        return start + (end - start) // 2


@dataclass(frozen=True)
class DecimalSplitter(BoundarySplitter[Decimal]):
    boundary_type: BoundaryType

    def _interpolate(self, start: Decimal, end: Decimal) -> Decimal:
        start, end = Decimal(start), Decimal(end)
        exponent = min(start.as_tuple().exponent, end.as_tuple().exponent)
        # Enough digits for the sum and its half to be exact.
        digits = max(start.adjusted(), end.adjusted()) - int(exponent) + 3
        with localcontext() as context:
            context.prec = max(context.prec, digits)
            return (start + end) / 2


def _digits_to_number(digits: Sequence[int], width: int, base: int) -> int:
    number = 0
    for index in range(width):
        number = number * base + (digits[index] if index < len(digits) else 0)
    return number


def _interpolate_digits(
    low: Sequence[int], high: Sequence[int], base: int
) -> list[int] | None:
    """Midpoint of two digit strings read as zero-padded base-``base``
    fractions.

    Bounds that are adjacent at their common width are widened by one
    digit. Returns None when no digit string lies strictly between them,
    which happens only when ``high`` is ``low`` followed by zeros.
    """
    width = max(len(low), len(high))
    low_number = _digits_to_number(low, width, base)
    high_number = _digits_to_number(high, width, base)
    if high_number == low_number:
        return None
    if high_number - low_number == 1:
        width += 1
        low_number *= base
        high_number *= base

    mid_number = (low_number + high_number) // 2
    digits = [0] * width
    for index in range(width - 1, -1, -1):
        mid_number, digits[index] = divmod(mid_number, base)

    while digits and digits[-1] == 0:
        digits.pop()
    return digits


def _code_point_to_digit(code_point: int) -> int:
    if code_point >= _SURROGATE_HIGH:
        return code_point - _SURROGATE_COUNT
    return min(code_point, _SURROGATE_LOW)


def _digit_to_code_point(digit: int) -> int:
    if digit >= _SURROGATE_LOW:
        return digit + _SURROGATE_COUNT
    return digit


@dataclass(frozen=True)
class StringSplitter(BoundarySplitter[str]):
    """Strings under binary (code point) collation.

    Midpoints never contain surrogate code points, which drivers cannot
    encode.
    """

    boundary_type: BoundaryType

    def _interpolate(self, start: str, end: str) -> str:
        digits = _interpolate_digits(
            [_code_point_to_digit(ord(c)) for c in start],
            [_code_point_to_digit(ord(c)) for c in end],
            _CODE_POINT_BASE - _SURROGATE_COUNT,
        )
        if digits is None:
            return start
        mid = "".join(chr(_digit_to_code_point(d)) for d in digits)
        # Surrogates in the bounds collapse onto one digit.
        return mid if start < mid < end else start


@dataclass(frozen=True)
class BytesSplitter(BoundarySplitter[bytes]):
    boundary_type: BoundaryType

    def _interpolate(self, start: bytes, end: bytes) -> bytes:
        digits = _interpolate_digits(start, end, _BYTE_BASE)
        if digits is None:
            return start
        return bytes(digits)


@dataclass(frozen=True)
class DateSplitter(BoundarySplitter[date]):
    boundary_type: BoundaryType

    def _interpolate(self, start: date, end: date) -> date:
        return start + timedelta(days=(end - start).days // 2)


@dataclass(frozen=True)
class TimestampSplitter(BoundarySplitter[datetime]):
    boundary_type: BoundaryType

    def _interpolate(self, start: datetime, end: datetime) -> datetime:
        return start + (end - start) // 2


@dataclass(frozen=True)
class CompositeSplitter(BoundarySplitter[tuple[Any, ...]]):
    """Tuples ordered lexicographically by their component splitters.

    Attributes:
        boundary_type: The COMPOSITE descriptor.
        components: One splitter per key column, in column order.
    """

    boundary_type: BoundaryType
    components: tuple[BoundarySplitter[Any], ...]

    def compare(self, a: tuple[Any, ...], b: tuple[Any, ...]) -> int:
        for component, left, right in zip(self.components, a, b):
            result = component.compare(left, right)
            if result != 0:
                return result
        return 0

    def _interpolate(
        self, start: tuple[Any, ...], end: tuple[Any, ...]
    ) -> tuple[Any, ...]:
        for index, component in enumerate(self.components):
            if component.compare(start[index], end[index]) != 0:
                break
        else:
            return start

        mid = component.split_point(start[index], end[index])
        if component.compare(mid, start[index]) != 0:
            return (*start[:index], mid, *start[index + 1 :])

        # Adjacent at the first differing column: keep it and move a later
        # column toward its upper end instead.
        for tail_index in range(index + 1, len(self.components)):
            tail = self.components[tail_index]
            tail_mid = tail.split_point(start[tail_index], None)
            if tail.compare(tail_mid, start[tail_index]) != 0:
                return (
                    *start[:tail_index],
                    tail_mid,
                    *start[tail_index + 1 :],
                )
        return start


_FIXED_WIDTH_LIMITS = {
    BoundaryTag.INT32: (-(2**31), 2**31 - 1),
    BoundaryTag.INT64: (-(2**63), 2**63 - 1),
}


@lru_cache(maxsize=None)
def create_boundary_splitter(
    boundary_type: BoundaryType,
) -> BoundarySplitter[Any]:
    """Return the splitter for a boundary-type descriptor.

    Splitters are cached per descriptor, so equal descriptors share one
    instance.

    Args:
        boundary_type: The descriptor of the partition column.

    Returns:
        The matching BoundarySplitter.

    Raises:
        BoundaryConfigurationException: If the descriptor is not supported.
    """
    tag = getattr(boundary_type, "tag", None)
    components = getattr(boundary_type, "components", ())
    if tag is not BoundaryTag.COMPOSITE and components:
        raise BoundaryConfigurationException(
            boundary_type, "only composite types take components"
        )

    match tag:
        case BoundaryTag.INT32 | BoundaryTag.INT64:
            min_value, max_value = _FIXED_WIDTH_LIMITS[tag]
            return IntegerSplitter(boundary_type, min_value, max_value)
        case BoundaryTag.BIG_INTEGER:
            return IntegerSplitter(boundary_type)
        case BoundaryTag.DECIMAL:
            return DecimalSplitter(boundary_type)
        case BoundaryTag.STRING:
            return StringSplitter(boundary_type)
        case BoundaryTag.BYTES:
            return BytesSplitter(boundary_type)
        case BoundaryTag.DATE:
            return DateSplitter(boundary_type)
        case BoundaryTag.TIMESTAMP:
            return TimestampSplitter(boundary_type)
        case BoundaryTag.COMPOSITE:
            if not components:
                raise BoundaryConfigurationException(
                    boundary_type, "composite types need components"
                )
            if any(c.tag is BoundaryTag.COMPOSITE for c in components):
                raise BoundaryConfigurationException(
                    boundary_type, "composite types cannot be nested"
                )
            return CompositeSplitter(
                boundary_type,
                tuple(create_boundary_splitter(c) for c in components),
            )
        case _:
            raise BoundaryConfigurationException(
                boundary_type, "no splitter for this tag"
            )

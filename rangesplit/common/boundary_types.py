"""Boundary-type descriptors.

A BoundaryType is an explicit tag naming the value domain of a partition
column. Splitters are selected by tag (see splitters.py), so nothing
downstream inspects the Python type of a boundary value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from typing_extensions import assert_never

from rangesplit.common.exceptions import BoundaryConfigurationException


class BoundaryTag(Enum):
    """Value domain of a partition column.

    Values:
        INT32: Signed 32-bit integer column (INT, MEDIUMINT, ...).
        INT64: Signed 64-bit integer column (BIGINT).
        BIG_INTEGER: Arbitrary-precision integer (NUMERIC with scale 0).
        DECIMAL: Exact decimal number.
        STRING: Textual column compared by code point.
        BYTES: Binary column (BINARY, VARBINARY, BYTEA).
        DATE: Calendar date.
        TIMESTAMP: Date and time.
        COMPOSITE: Tuple of the above, one per key column.
    """

    INT32 = "int32"
    INT64 = "int64"
    BIG_INTEGER = "big_integer"
    DECIMAL = "decimal"
    STRING = "string"
    BYTES = "bytes"
    DATE = "date"
    TIMESTAMP = "timestamp"
    COMPOSITE = "composite"


_COMPOSITE_PATTERN = re.compile(r"^composite\((?P<body>.*)\)$")


@dataclass(frozen=True)
class BoundaryType:
    """Descriptor of a boundary's value domain.

    Attributes:
        tag: The domain tag.
        components: For COMPOSITE, one descriptor per key column, in
            column order. Empty for every other tag.
    """

    tag: BoundaryTag
    components: tuple[BoundaryType, ...] = ()

    @classmethod
    def composite(cls, *components: BoundaryType) -> BoundaryType:
        return cls(BoundaryTag.COMPOSITE, tuple(components))

    @property
    def arity(self) -> int:
        """Number of key columns a boundary of this type covers."""
        if self.tag is BoundaryTag.COMPOSITE:
            return len(self.components)
        return 1

    def __str__(self) -> str:
        if self.tag is BoundaryTag.COMPOSITE:
            inner = ",".join(str(c) for c in self.components)
            return f"composite({inner})"
        return self.tag.value

    @classmethod
    def parse(cls, text: str) -> BoundaryType:
        """Parse a textual descriptor such as ``int64`` or
        ``composite(int64,string)``.

        Raises:
            BoundaryConfigurationException: If a name is not recognized.
        """
        text = text.strip().lower()
        composite_match = _COMPOSITE_PATTERN.match(text)
        if composite_match:
            body = composite_match.group("body")
            names = [n for n in body.split(",") if n.strip()]
            return cls.composite(*(cls.parse(n) for n in names))
        try:
            tag = BoundaryTag(text)
        except ValueError as e:
            raise BoundaryConfigurationException(
                text, "unknown boundary type name"
            ) from e
        if tag is BoundaryTag.COMPOSITE:
            raise BoundaryConfigurationException(
                text, "composite types need components"
            )
        return cls(tag)

    def parse_value(self, text: str) -> Any:
        """Convert a command-line literal into a boundary value.

        Composite literals are comma-separated, one value per component.

        Raises:
            ValueError: If the literal does not fit the domain.
        """
        match self.tag:
            case (
                BoundaryTag.INT32 | BoundaryTag.INT64 | BoundaryTag.BIG_INTEGER
            ):
                return int(text)
            case BoundaryTag.DECIMAL:
                try:
                    return Decimal(text)
                except InvalidOperation as e:
                    raise ValueError(f"Invalid decimal: {text!r}") from e
            case BoundaryTag.STRING:
                return text
            case BoundaryTag.BYTES:
                return bytes.fromhex(text)
            case BoundaryTag.DATE:
                return date.fromisoformat(text)
            case BoundaryTag.TIMESTAMP:
                return datetime.fromisoformat(text)
            case BoundaryTag.COMPOSITE:
                parts = text.split(",")
                if len(parts) != len(self.components):
                    raise ValueError(
                        f"Expected {len(self.components)} comma-separated "
                        f"values for {self}, got {len(parts)}"
                    )
                return tuple(
                    component.parse_value(part)
                    for component, part in zip(self.components, parts)
                )
            case _:
                assert_never(self.tag)


INT32 = BoundaryType(BoundaryTag.INT32)
INT64 = BoundaryType(BoundaryTag.INT64)
BIG_INTEGER = BoundaryType(BoundaryTag.BIG_INTEGER)
DECIMAL = BoundaryType(BoundaryTag.DECIMAL)
STRING = BoundaryType(BoundaryTag.STRING)
BYTES = BoundaryType(BoundaryTag.BYTES)
DATE = BoundaryType(BoundaryTag.DATE)
TIMESTAMP = BoundaryType(BoundaryTag.TIMESTAMP)

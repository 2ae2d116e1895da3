"""
Key-range counting for parallel table reads.

This module provides the pieces a table-splitting algorithm needs: an
immutable half-open Range over any key type (Range, BoundarySplitter) and a
RangeCounter that asks the source database how many rows each Range holds.

See docs/source/ for the design documentation.
"""

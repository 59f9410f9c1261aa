"""Deterministic bounding of raw fuzz values into a target range.

Raw values are drawn from the uint256 domain. ``bound`` leaves in-range
values untouched so dictionary and edge values (0, 1, max) survive, maps
the four smallest and four largest raw values onto the two ends of the
target range, and wraps everything else modulo the window size. Values
that need folding are first reduced into the uint256 domain.
"""

from __future__ import annotations

import logging

from ghostfuzz.core.errors import InvalidRange

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1
_DOMAIN = UINT256_MAX + 1


def bound(raw: int, low: int, high: int) -> int:
    """Fold ``raw`` into ``[low, high]``.

    Pure and total for every ``low <= high``; replay and shrinking rely on
    the same inputs always producing the same output.
    """
    if low > high:
        raise InvalidRange(low, high)

    if low <= raw <= high:
        return raw

    x = raw % _DOMAIN
    if low <= x <= high:
        return x

    size = high - low + 1

    # 0..3 and MAX-3..MAX land on the range edges
    if x <= 3 and size > x:
        return low + x
    if x >= UINT256_MAX - 3 and size > UINT256_MAX - x:
        return high - (UINT256_MAX - x)

    if x > high:
        rem = (x - high) % size
        if rem == 0:
            return high
        return low + rem - 1

    rem = (low - x) % size
    if rem == 0:
        return low
    return high - rem + 1


class Bounder:
    """``bound`` with pass-through/fold statistics for campaign summaries."""

    def __init__(self) -> None:
        self.passed_through = 0
        self.folded = 0

    def __call__(self, raw: int, low: int, high: int) -> int:
        result = bound(raw, low, high)
        if result == raw:
            self.passed_through += 1
        else:
            self.folded += 1
            logger.debug("bound(%d, %d, %d) -> %d", raw, low, high, result)
        return result

    def stats(self) -> dict[str, int]:
        return {"passed_through": self.passed_through, "folded": self.folded}

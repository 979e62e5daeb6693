"""
POSEFIT Form Service - Banded Lookup Tables

A band table partitions a continuous metric into ranges, each carrying a
feedback message and a score deduction. Tables are plain data so coverage
can be checked independently of the scorer.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import math


@dataclass(frozen=True)
class Band:
    """Closed range [lower, upper] mapped to feedback and a deduction."""
    lower: float
    upper: float
    deduction: float
    message: Optional[str]

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper


@dataclass(frozen=True)
class BandTable:
    """
    Ordered bands evaluated first-match.

    Adjacent bands may share an endpoint; the earlier band wins the shared
    edge. Values below the lowest covered bound fall into `below`, values
    above the highest covered bound fall into `above`.
    """
    name: str
    bands: Tuple[Band, ...]
    below: Band
    above: Band

    def __post_init__(self):
        object.__setattr__(self, "bands", tuple(self.bands))
        if not self.bands:
            raise ValueError(f"Band table '{self.name}' has no bands")

    @property
    def lower_bound(self) -> float:
        return min(band.lower for band in self.bands)

    @property
    def upper_bound(self) -> float:
        return max(band.upper for band in self.bands)

    def lookup(self, value: float) -> Band:
        """Return the single band selected for value."""
        if math.isnan(value):
            raise ValueError(f"Band table '{self.name}' cannot classify NaN")
        for band in self.bands:
            if band.contains(value):
                return band
        if value < self.lower_bound:
            return self.below
        if value > self.upper_bound:
            return self.above
        # Only reachable if the table has an interior gap
        raise LookupError(f"Band table '{self.name}' has no band for {value}")

    def gaps(self) -> List[Tuple[float, float]]:
        """Uncovered intervals between lower_bound and upper_bound."""
        ordered = sorted(self.bands, key=lambda b: (b.lower, b.upper))
        gaps = []
        reach = ordered[0].upper
        for band in ordered[1:]:
            if band.lower > reach:
                gaps.append((reach, band.lower))
            reach = max(reach, band.upper)
        return gaps

    def overlaps(self) -> List[Tuple[Band, Band]]:
        """Pairs of bands sharing more than a single endpoint."""
        found = []
        for i, first in enumerate(self.bands):
            for second in self.bands[i + 1:]:
                if min(first.upper, second.upper) > max(first.lower, second.lower):
                    found.append((first, second))
        return found


def band_table(
    name: str,
    bands: Sequence[Tuple[float, float, float, Optional[str]]],
    below: Tuple[float, Optional[str]],
    above: Tuple[float, Optional[str]],
) -> BandTable:
    """
    Build a table from (lower, upper, deduction, message) tuples.

    below/above are (deduction, message) catch-alls for out-of-range values.
    """
    built = tuple(Band(lower, upper, deduction, message) for lower, upper, deduction, message in bands)
    return BandTable(
        name=name,
        bands=built,
        below=Band(-math.inf, min(b.lower for b in built), below[0], below[1]),
        above=Band(max(b.upper for b in built), math.inf, above[0], above[1]),
    )

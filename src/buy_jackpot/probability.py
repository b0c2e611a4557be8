from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple, Union

from .project_constants import (
    DEFAULT_PERCENT,
    PROBABILITY_BANDS,
    TOP_BAND_PERCENT,
    TOP_BAND_THRESHOLD,
)

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class ProbabilityTable:
    """Maps a buy's USD value to a whole win percent.

    Each band is an open interval ``(low, high)``: a value sitting exactly on
    a bound, or in the gap between two bands, scores ``default_percent``.
    Values at or above ``top_threshold`` score ``top_percent``.
    """

    bands: Tuple[Tuple[Number, Number, int], ...] = PROBABILITY_BANDS
    top_threshold: Number = TOP_BAND_THRESHOLD
    top_percent: int = TOP_BAND_PERCENT
    default_percent: int = DEFAULT_PERCENT

    def chance_for_usd_value(self, usd: Number) -> int:
        value = Decimal(str(usd))
        if value.is_nan():
            return self.default_percent
        for low, high, percent in self.bands:
            if Decimal(str(low)) < value < Decimal(str(high)):
                return percent
        if value >= Decimal(str(self.top_threshold)):
            return self.top_percent
        return self.default_percent


DEFAULT_TABLE = ProbabilityTable()


def chance_for_usd_value(usd: Number) -> int:
    return DEFAULT_TABLE.chance_for_usd_value(usd)

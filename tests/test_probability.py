from decimal import Decimal

import pytest

from buy_jackpot.probability import ProbabilityTable, chance_for_usd_value
from buy_jackpot.project_constants import (
    DEFAULT_PERCENT,
    PROBABILITY_BANDS,
    TOP_BAND_PERCENT,
    TOP_BAND_THRESHOLD,
)


@pytest.mark.parametrize("low, high, percent", PROBABILITY_BANDS)
def test_values_inside_a_band_score_its_percent(low, high, percent):
    for usd in (low + 0.01, (low + high) / 2, high - 0.01):
        assert chance_for_usd_value(usd) == percent


@pytest.mark.parametrize("low, high, percent", PROBABILITY_BANDS)
def test_band_bounds_are_exclusive(low, high, percent):
    assert chance_for_usd_value(low) == DEFAULT_PERCENT
    # the last band's upper bound is where the top band starts
    expected_high = TOP_BAND_PERCENT if high >= TOP_BAND_THRESHOLD else DEFAULT_PERCENT
    assert chance_for_usd_value(high) == expected_high


@pytest.mark.parametrize("usd", [200.5, 201, 300.5, 400.99, 900.5])
def test_gaps_between_bands_fall_to_default(usd):
    assert chance_for_usd_value(usd) == DEFAULT_PERCENT


@pytest.mark.parametrize("usd", [1000, 1000.01, 25_000, Decimal("1e9")])
def test_top_band_scores_ten(usd):
    assert chance_for_usd_value(usd) == 10


@pytest.mark.parametrize("usd", [0, -5, 50, 97, float("nan")])
def test_small_zero_negative_and_nan_fall_to_default(usd):
    assert chance_for_usd_value(usd) == DEFAULT_PERCENT


def test_scenario_buy_of_150_scores_one_percent():
    assert chance_for_usd_value(Decimal("150")) == 1


def test_custom_table():
    table = ProbabilityTable(bands=((0, 10, 4),), top_threshold=50, top_percent=9, default_percent=1)
    assert table.chance_for_usd_value(5) == 4
    assert table.chance_for_usd_value(10) == 1
    assert table.chance_for_usd_value(50) == 9

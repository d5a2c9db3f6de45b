from __future__ import annotations

import pytest

from fairline.pricing.configuration import MarginConfig
from fairline.pricing.errors import InvalidProbabilityError
from fairline.pricing.margin import (
    apply_margin,
    decimal_odds_to_fair_probabilities,
    price_multi_way,
    price_two_way,
)


def test_apply_margin_scales_to_overround() -> None:
    margined = apply_margin([0.5, 0.5], 0.05)
    assert margined == pytest.approx([0.525, 0.525])
    assert sum(margined) == pytest.approx(1.05)


def test_apply_margin_renormalises_loose_inputs() -> None:
    margined = apply_margin([0.3, 0.3, 0.3], 0.1)
    assert sum(margined) == pytest.approx(1.1)
    assert margined[0] == pytest.approx(1.1 / 3)


def test_apply_margin_does_not_mutate_input() -> None:
    fair = [0.2, 0.8]
    apply_margin(fair, 0.05)
    assert fair == [0.2, 0.8]


def test_zero_margin_is_identity() -> None:
    assert apply_margin([0.25, 0.75], 0.0) == [0.25, 0.75]


def test_ceiling_clips_but_never_below_fair() -> None:
    clipped = apply_margin([0.99, 0.01], 0.05, ceiling=0.999)
    assert clipped[0] == pytest.approx(0.999)
    near_certain = apply_margin([0.9995, 0.0005], 0.05, ceiling=0.999)
    assert near_certain[0] == pytest.approx(0.9995)


@pytest.mark.parametrize("margin", [-0.01, float("nan")])
def test_invalid_margin_fraction(margin: float) -> None:
    with pytest.raises(InvalidProbabilityError):
        apply_margin([0.5, 0.5], margin)


def test_invalid_fair_probability() -> None:
    with pytest.raises(InvalidProbabilityError):
        apply_margin([1.2, -0.2], 0.05)


def test_price_two_way() -> None:
    line = price_two_way(2.5, 0.4, MarginConfig(margin_fraction=0.05), label="Over/Under 2.5")
    assert line.fair_probability_a + line.fair_probability_b == pytest.approx(1.0)
    assert line.margined_probability_a == pytest.approx(0.42)
    assert line.margined_probability_b == pytest.approx(0.63)
    assert line.fair_odds_a == pytest.approx(2.5)
    assert line.odds_a == pytest.approx(1 / 0.42)
    assert line.overround == pytest.approx(1.05)
    assert line.label == "Over/Under 2.5"


def test_price_multi_way_uses_multi_way_fraction() -> None:
    margin = MarginConfig(margin_fraction=0.05, multi_way_fraction=0.12)
    market = price_multi_way("1X2", [("home", 0.5), ("draw", 0.3), ("away", 0.2)], margin)
    assert market.overround == pytest.approx(1.12)
    assert market["draw"].margined_probability == pytest.approx(0.3 * 1.12)
    assert market.labels == ("home", "draw", "away")
    with pytest.raises(KeyError):
        market["nobody"]


def test_multi_way_fraction_defaults_to_margin_fraction() -> None:
    margin = MarginConfig(margin_fraction=0.07)
    assert margin.multi_way == pytest.approx(0.07)
    market = price_multi_way("total", [("a", 0.6), ("b", 0.4)], margin)
    assert market.overround == pytest.approx(1.07)


def test_decimal_odds_to_fair_probabilities() -> None:
    fair_a, fair_b = decimal_odds_to_fair_probabilities(1.9, 1.9)
    assert (fair_a, fair_b) == pytest.approx((0.5, 0.5))
    fair_a, fair_b = decimal_odds_to_fair_probabilities(1.5, 2.5)
    assert fair_a == pytest.approx(0.625)
    assert fair_a + fair_b == pytest.approx(1.0)


@pytest.mark.parametrize(("odds_a", "odds_b"), [(1.0, 2.0), (0.5, 3.0), (float("inf"), 2.0)])
def test_decimal_odds_must_exceed_one(odds_a: float, odds_b: float) -> None:
    with pytest.raises(InvalidProbabilityError):
        decimal_odds_to_fair_probabilities(odds_a, odds_b)

"""Overround application shared by every market the engines produce.

All markets follow the same policy: margined probabilities are the fair
probabilities rescaled so that they sum to exactly ``1 + margin``, after which
each selection is clipped to the configured ceiling but never below its fair
value.  Inputs are never modified; a new priced view is returned.
"""

from __future__ import annotations

import math
from typing import List, Sequence, Tuple

from .configuration import MarginConfig
from .errors import InvalidProbabilityError
from .models import MarketLine, PricedMarket, PricedSelection


def _check_probability(value: float, name: str) -> float:
    if not math.isfinite(value) or value < 0.0 or value > 1.0 + 1e-9:
        raise InvalidProbabilityError(f"{name} must lie in [0, 1], got {value!r}")
    return min(1.0, float(value))


def apply_margin(
    probabilities: Sequence[float],
    margin_fraction: float,
    *,
    ceiling: float = 0.999,
) -> List[float]:
    """Return margined copies of ``probabilities``.

    >>> apply_margin([0.5, 0.5], 0.05)
    [0.525, 0.525]
    """

    if not math.isfinite(margin_fraction) or margin_fraction < 0.0:
        raise InvalidProbabilityError(
            f"margin fraction must be a non-negative number, got {margin_fraction!r}"
        )
    fair = [_check_probability(p, "fair probability") for p in probabilities]
    total = sum(fair)
    if margin_fraction == 0.0 or total <= 0.0:
        return list(fair)
    scale = (1.0 + margin_fraction) / total
    return [max(p, min(p * scale, ceiling)) for p in fair]


def price_two_way(
    line: float,
    fair_probability_a: float,
    margin: MarginConfig,
    *,
    label: str = "",
) -> MarketLine:
    """Price a complementary two-way market at ``line``."""

    fair_a = _check_probability(fair_probability_a, "fair probability")
    fair_b = max(0.0, 1.0 - fair_a)
    margined_a, margined_b = apply_margin(
        [fair_a, fair_b], margin.margin_fraction, ceiling=margin.probability_ceiling
    )
    return MarketLine(
        line=float(line),
        fair_probability_a=fair_a,
        fair_probability_b=fair_b,
        margined_probability_a=margined_a,
        margined_probability_b=margined_b,
        label=label,
    )


def price_multi_way(
    name: str,
    outcomes: Sequence[Tuple[str, float]],
    margin: MarginConfig,
) -> PricedMarket:
    """Price a multi-way market using the multi-way margin fraction."""

    labels = [label for label, _ in outcomes]
    fair = [_check_probability(p, f"probability of {label!r}") for label, p in outcomes]
    margined = apply_margin(fair, margin.multi_way, ceiling=margin.probability_ceiling)
    selections = tuple(
        PricedSelection(label=label, fair_probability=f, margined_probability=m)
        for label, f, m in zip(labels, fair, margined)
    )
    return PricedMarket(name=name, selections=selections)


def decimal_odds_to_fair_probabilities(odds_a: float, odds_b: float) -> Tuple[float, float]:
    """Strip the overround from a two-way decimal price proportionally."""

    if not (math.isfinite(odds_a) and math.isfinite(odds_b)) or odds_a <= 1.0 or odds_b <= 1.0:
        raise InvalidProbabilityError(
            f"decimal odds must exceed 1.0, got {odds_a!r} and {odds_b!r}"
        )
    raw_a = 1.0 / odds_a
    raw_b = 1.0 / odds_b
    total = raw_a + raw_b
    return raw_a / total, raw_b / total


__all__ = [
    "apply_margin",
    "decimal_odds_to_fair_probabilities",
    "price_multi_way",
    "price_two_way",
]

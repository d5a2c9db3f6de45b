"""Sets-to-win formats and match-to-set probability inversion.

For a first-to-``K`` format the match probability is the polynomial

    M(s) = sum_{b < K} C(K - 1 + b, b) * s**K * (1 - s)**b

which is strictly increasing on ``(0, 1)`` with ``M(1 - s) = 1 - M(s)``.
:func:`invert_match_probability` solves ``M(s) = p`` on the favourite's half
of the interval and mirrors underdog inputs.
"""

from __future__ import annotations

import logging
import math
from typing import List, Tuple

from .configuration import MarginConfig, PricingConfig, SolverConfig
from .errors import InvalidFormatError, InvalidProbabilityError
from .lines import drop_extremes, pick_balanced_lines
from .margin import decimal_odds_to_fair_probabilities, price_multi_way, price_two_way
from .models import (
    CalibrationResult,
    FormatMarkets,
    MarketLine,
    MatchState,
    ScoreState,
    SeriesDistribution,
    SeriesFormat,
)
from .numerics import bisect, comb
from .rally import price_points_markets
from .series import handicap_cover_probability, resolve_state, series_distribution

logger = logging.getLogger(__name__)

INVERSION_UPPER_BOUND = 1.0 - 1e-9


def resolve_format(series_format: SeriesFormat | str | int) -> SeriesFormat:
    """Accept a :class:`SeriesFormat`, a ``"bo5"``-style key or a best-of count."""

    if isinstance(series_format, SeriesFormat):
        return series_format
    if isinstance(series_format, str):
        return SeriesFormat.from_key(series_format)
    if isinstance(series_format, int) and not isinstance(series_format, bool):
        return SeriesFormat.for_best_of(series_format)
    raise InvalidFormatError(f"Unsupported series format {series_format!r}")


def match_probability_from_set_probability(
    series_format: SeriesFormat | str | int, set_probability: float
) -> float:
    fmt = resolve_format(series_format)
    s = float(set_probability)
    if not math.isfinite(s) or not 0.0 <= s <= 1.0:
        raise InvalidProbabilityError(
            f"set probability must lie in [0, 1], got {set_probability!r}"
        )
    k = fmt.sets_to_win
    return sum(comb(k - 1 + b, b) * s**k * (1.0 - s) ** b for b in range(k))


def invert_match_probability(
    match_probability: float,
    series_format: SeriesFormat | str | int,
    config: SolverConfig | None = None,
) -> CalibrationResult:
    """Per-set probability implied by a fair match probability in ``(0, 1)``."""

    config = config or SolverConfig()
    fmt = resolve_format(series_format)
    p = match_probability
    if not math.isfinite(p) or not 0.0 < p < 1.0:
        raise InvalidProbabilityError(
            f"match probability must lie strictly between 0 and 1, got {p!r}"
        )
    if p == 0.5:
        return CalibrationResult(
            value=0.5,
            lower=0.5,
            upper=INVERSION_UPPER_BOUND,
            iterations=0,
            residual=0.0,
            method="symmetric",
            target=p,
        )
    if p < 0.5:
        favourite = invert_match_probability(1.0 - p, fmt, config)
        return CalibrationResult(
            value=1.0 - favourite.value,
            lower=1.0 - favourite.upper,
            upper=1.0 - favourite.lower,
            iterations=favourite.iterations,
            residual=-favourite.residual,
            method=favourite.method,
            target=p,
        )

    root = bisect(
        lambda s: match_probability_from_set_probability(fmt, s) - p,
        0.5,
        INVERSION_UPPER_BOUND,
        tolerance=config.tolerance,
        max_iterations=config.max_iterations,
    )
    logger.debug(
        "Inverted match probability %.6f to set probability %.6f (%s, %d iterations)",
        p,
        root.root,
        fmt.key,
        root.iterations,
    )
    return CalibrationResult(
        value=root.root,
        lower=root.lower,
        upper=root.upper,
        iterations=root.iterations,
        residual=root.residual,
        method="bisection",
        target=p,
    )


# ---------------------------------------------------------------------------
# Markets
# ---------------------------------------------------------------------------


def _ordered_scores(distribution: SeriesDistribution) -> List[Tuple[str, float]]:
    first_to = distribution.first_to
    wins_a = sorted(
        (item for item in distribution.scores.items() if item[0][0] == first_to),
        key=lambda item: item[0][1],
    )
    wins_b = sorted(
        (item for item in distribution.scores.items() if item[0][1] == first_to),
        key=lambda item: item[0][0],
    )
    return [(f"{a}-{b}", probability) for (a, b), probability in wins_a + wins_b]


def _total_sets_lines(
    distribution: SeriesDistribution, margin: MarginConfig, config: PricingConfig
) -> List[MarketLine]:
    total_sets = distribution.frames
    candidates = [
        price_two_way(
            count + 0.5,
            min(1.0, total_sets.probability_at_least(count + 1)),
            margin,
            label=f"Over/Under {count + 0.5:g} sets",
        )
        for count in total_sets.support[:-1]
    ]
    lines = config.lines
    return pick_balanced_lines(
        drop_extremes(candidates, lines.extreme_tolerance),
        lines.max_balanced_lines,
        lines.balance_tolerance,
    )


def _set_handicap_lines(
    fmt: SeriesFormat, distribution: SeriesDistribution, margin: MarginConfig
) -> List[MarketLine]:
    return [
        price_two_way(
            line,
            min(1.0, handicap_cover_probability(distribution, line)),
            margin,
            label=f"Set handicap -{line:g}",
        )
        for line in fmt.handicap_margins
    ]


def price_format_markets(
    fair_match_probability_a: float,
    series_format: SeriesFormat | str | int,
    margin: MarginConfig | None = None,
    config: PricingConfig | None = None,
    state: MatchState | ScoreState | None = None,
) -> FormatMarkets:
    """Price every set-based market implied by a fair match probability.

    The per-set probability is solved from the pre-match price; an in-play
    ``state`` then conditions the score distribution and every derived line.
    """

    config = config or PricingConfig()
    margin = margin or config.margin
    fmt = resolve_format(series_format)
    if state is not None and not fmt.supports_in_play_state:
        raise InvalidFormatError(f"format {fmt.key!r} does not support in-play score states")

    inversion = invert_match_probability(fair_match_probability_a, fmt, config.solver)
    set_probability = inversion.value
    match_state = resolve_state(fmt.best_of, state)
    distribution = series_distribution(
        set_probability, match_state, config.solver.distribution_tolerance
    )
    total_sets = distribution.frames

    next_set = "First set winner" if match_state.frames_played == 0 else "Next set winner"
    if match_state.is_complete:
        totals: List[MarketLine] = []
        handicaps: List[MarketLine] = []
    else:
        totals = _total_sets_lines(distribution, margin, config)
        handicaps = _set_handicap_lines(fmt, distribution, margin)

    return FormatMarkets(
        format=fmt,
        fair_match_probability=fair_match_probability_a,
        set_probability=set_probability,
        inversion=inversion,
        match=price_two_way(
            0.0, min(1.0, distribution.match_probability_a), margin, label="Match winner"
        ),
        first_set=price_two_way(0.0, set_probability, margin, label=next_set),
        correct_score=price_multi_way("Correct score", _ordered_scores(distribution), margin),
        total_sets=total_sets,
        total_sets_market=price_multi_way(
            "Total sets",
            [(str(count), probability) for count, probability in total_sets.items()],
            margin,
        ),
        expected_sets=total_sets.mean(),
        totals_lines=tuple(totals),
        handicap_lines=tuple(handicaps),
        points=price_points_markets(set_probability, distribution, config, margin),
    )


def price_format_markets_from_odds(
    odds_a: float,
    odds_b: float,
    series_format: SeriesFormat | str | int,
    margin: MarginConfig | None = None,
    config: PricingConfig | None = None,
    state: MatchState | ScoreState | None = None,
) -> FormatMarkets:
    """Strip the overround from two decimal prices and price the format."""

    fair_a, _ = decimal_odds_to_fair_probabilities(odds_a, odds_b)
    return price_format_markets(fair_a, series_format, margin, config, state)


__all__ = [
    "INVERSION_UPPER_BOUND",
    "invert_match_probability",
    "match_probability_from_set_probability",
    "price_format_markets",
    "price_format_markets_from_odds",
    "resolve_format",
]

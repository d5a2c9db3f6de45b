"""Rally-level points model.

A set is a race to ``target`` points (11 by default) that must be won by two.
Given the probability ``p`` that side A wins a single rally, the set splits
into direct wins (the loser stops short of ``target - 1``) and a deuce branch
once both sides reach ``target - 1``.  From deuce every pair of rallies either
ends the set (``p**2`` or ``q**2``) or returns to level (``2pq``).

Callers know the set probability rather than the rally probability, so
:func:`solve_rally_probability` inverts the relationship by bisection and
produces the per-set point summary from the same iterations.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Sequence, Tuple

from .configuration import MarginConfig, PricingConfig, SolverConfig
from .errors import InvalidProbabilityError
from .lines import build_candidates, drop_extremes, pick_balanced_lines, round_to_half
from .margin import price_two_way
from .models import (
    CalibrationResult,
    MarketLine,
    PointsMarkets,
    ProbabilityDistribution,
    RallySummary,
    SeriesDistribution,
)
from .numerics import comb

logger = logging.getLogger(__name__)

RALLY_UPPER_BOUND = 0.999999
DEUCE_TERM_LIMIT = 10_000


def _check_probability(probability: float, name: str) -> float:
    if not math.isfinite(probability) or not 0.0 <= probability <= 1.0:
        raise InvalidProbabilityError(f"{name} must lie in [0, 1], got {probability!r}")
    return float(probability)


def _direct_terms(p: float, target: int) -> List[float]:
    q = 1.0 - p
    return [comb(target - 1 + k, k) * p**target * q**k for k in range(target - 1)]


def _deuce_probability(p: float, target: int) -> float:
    q = 1.0 - p
    return comb(2 * (target - 1), target - 1) * p ** (target - 1) * q ** (target - 1)


def _deuce_win_probability(p: float) -> float:
    q = 1.0 - p
    decisive = p * p + q * q
    if decisive <= 0.0:
        return 0.5
    return p * p / decisive


def set_win_probability_from_rally(rally_probability: float, target: int = 11) -> float:
    """Probability of winning a race-to-``target``, win-by-two set."""

    p = _check_probability(rally_probability, "rally probability")
    return sum(_direct_terms(p, target)) + _deuce_probability(p, target) * _deuce_win_probability(p)


def rally_summary(rally_probability: float, target: int = 11) -> RallySummary:
    """Set win probability and point expectations for a rally probability."""

    p = _check_probability(rally_probability, "rally probability")
    q = 1.0 - p
    wins_a = _direct_terms(p, target)
    wins_b = _direct_terms(q, target)
    deuce = _deuce_probability(p, target)
    deuce_a = deuce * _deuce_win_probability(p)
    deuce_b = deuce - deuce_a
    continuation = 2.0 * p * q
    deuce_points = 2.0 * (target - 1) + 2.0 / (1.0 - continuation)

    mass_a = sum(wins_a) + deuce_a
    mass_b = sum(wins_b) + deuce_b
    points_a = sum(w * (target + k) for k, w in enumerate(wins_a)) + deuce_a * deuce_points
    points_b = sum(w * (target + k) for k, w in enumerate(wins_b)) + deuce_b * deuce_points
    diff_a = sum(w * (target - k) for k, w in enumerate(wins_a)) + deuce_a * 2.0
    diff_b = sum(w * (target - k) for k, w in enumerate(wins_b)) + deuce_b * 2.0

    return RallySummary(
        rally_probability=p,
        set_win_probability=mass_a,
        average_set_points=points_a + points_b,
        points_on_win_a=points_a / mass_a if mass_a > 0.0 else float(target),
        points_on_win_b=points_b / mass_b if mass_b > 0.0 else float(target),
        diff_on_win_a=diff_a / mass_a if mass_a > 0.0 else float(target),
        diff_on_win_b=-diff_b / mass_b if mass_b > 0.0 else -float(target),
    )


def solve_rally_probability(
    set_probability: float,
    target: int = 11,
    config: SolverConfig | None = None,
) -> Tuple[CalibrationResult, RallySummary]:
    """Invert a set-win probability into the implied rally probability.

    Inputs below one half are solved for the other side and mirrored.  A set
    probability beyond what :data:`RALLY_UPPER_BOUND` can produce is pinned
    to the bound.
    """

    config = config or SolverConfig()
    s = _check_probability(set_probability, "set probability")
    if s < 0.5:
        mirrored, summary = solve_rally_probability(1.0 - s, target, config)
        result = CalibrationResult(
            value=1.0 - mirrored.value,
            lower=1.0 - mirrored.upper,
            upper=1.0 - mirrored.lower,
            iterations=mirrored.iterations,
            residual=-mirrored.residual,
            method=mirrored.method,
            target=s,
        )
        return result, summary.swapped()

    lower, upper = 0.5, RALLY_UPPER_BOUND
    summary = rally_summary(upper, target)
    if summary.set_win_probability <= s:
        return (
            CalibrationResult(
                value=upper,
                lower=lower,
                upper=upper,
                iterations=0,
                residual=summary.set_win_probability - s,
                method="upper-bound",
                target=s,
            ),
            summary,
        )

    lo, hi = lower, upper
    mid = lo
    residual = 0.0
    iterations = 0
    while iterations < config.rally_iterations:
        mid = 0.5 * (lo + hi)
        summary = rally_summary(mid, target)
        residual = summary.set_win_probability - s
        iterations += 1
        if abs(residual) <= config.rally_tolerance:
            break
        if residual < 0.0:
            lo = mid
        else:
            hi = mid
    logger.debug(
        "Solved rally probability %.6f for set probability %.6f in %d iterations",
        mid,
        s,
        iterations,
    )
    return (
        CalibrationResult(
            value=mid,
            lower=lower,
            upper=upper,
            iterations=iterations,
            residual=residual,
            method="bisection",
            target=s,
        ),
        summary,
    )


def summary_from_set_probability(
    set_probability: float, target: int = 11, config: SolverConfig | None = None
) -> RallySummary:
    return solve_rally_probability(set_probability, target, config)[1]


def set_points_distribution(
    rally_probability: float,
    target: int = 11,
    tolerance: float = 1e-12,
) -> ProbabilityDistribution:
    """Distribution of total points played in one set.

    The deuce tail is geometric and is cut once the unassigned mass falls
    under ``tolerance``; the result is renormalised.
    """

    p = _check_probability(rally_probability, "rally probability")
    q = 1.0 - p
    masses: Dict[int, float] = {}
    for k, (win_a, win_b) in enumerate(zip(_direct_terms(p, target), _direct_terms(q, target))):
        masses[target + k] = win_a + win_b

    continuation = 2.0 * p * q
    remaining = _deuce_probability(p, target)
    points = 2 * (target - 1)
    for _ in range(DEUCE_TERM_LIMIT):
        if remaining < tolerance:
            break
        points += 2
        masses[points] = masses.get(points, 0.0) + remaining * (1.0 - continuation)
        remaining *= continuation
    return ProbabilityDistribution(masses).normalized(0.0)


# ---------------------------------------------------------------------------
# Points markets
# ---------------------------------------------------------------------------


def _match_point_events(
    distribution: SeriesDistribution, summary: RallySummary
) -> Sequence[Tuple[float, float, float]]:
    # (probability, total points, point differential for A) per final score.
    return [
        (
            probability,
            a * summary.points_on_win_a + b * summary.points_on_win_b,
            a * summary.diff_on_win_a + b * summary.diff_on_win_b,
        )
        for (a, b), probability in distribution.scores.items()
    ]


def _linear_points(
    set_probability: float, expected_sets: float, config: PricingConfig
) -> PointsMarkets:
    competitiveness = 1.0 - abs(2.0 * set_probability - 1.0)
    set_points = max(config.points.a + config.points.b * competitiveness, 0.0)
    match_points = expected_sets * set_points
    return PointsMarkets(
        method="linear",
        expected_set_points=set_points,
        expected_match_points=match_points,
        expected_points_handicap=match_points * (2.0 * set_probability - 1.0),
    )


def first_set_total_line(
    summary: RallySummary, target: int, margin: MarginConfig, tolerance: float
) -> MarketLine:
    points = set_points_distribution(summary.rally_probability, target, tolerance)
    line = math.floor(points.mean()) + 0.5
    return price_two_way(
        line,
        min(1.0, points.probability_at_least(math.floor(line) + 1)),
        margin,
        label=f"First set Over/Under {line:g} points",
    )


def price_points_markets(
    set_probability: float,
    distribution: SeriesDistribution,
    config: PricingConfig | None = None,
    margin: MarginConfig | None = None,
) -> PointsMarkets:
    """Expected points, points totals and points handicap for a series.

    ``distribution`` supplies the final-score probabilities; the rally
    summary is applied per set won by each side.
    """

    config = config or PricingConfig()
    margin = margin or config.margin
    expected_sets = distribution.expected_frames
    if config.points.method == "linear":
        return _linear_points(set_probability, expected_sets, config)

    target = config.points.rally_target
    lines = config.lines
    _, summary = solve_rally_probability(set_probability, target, config.solver)
    events = _match_point_events(distribution, summary)
    expected_points = sum(probability * total for probability, total, _ in events)
    expected_diff = sum(probability * diff for probability, _, diff in events)

    def total_line(offset: float) -> MarketLine:
        line = round_to_half(expected_points + offset * summary.average_set_points / 2.0)
        threshold = math.floor(line) + 1
        over = sum(probability for probability, total, _ in events if total >= threshold)
        return price_two_way(
            line, min(1.0, over), margin, label=f"Over/Under {line:g} points"
        )

    def handicap_line(offset: float) -> MarketLine:
        base = max(1.0, abs(summary.diff_on_win_a))
        line = max(0.5, round_to_half(base * (1.5 + 0.5 * offset)))
        cover = sum(probability for probability, _, diff in events if diff >= line)
        return price_two_way(
            line, min(1.0, cover), margin, label=f"Points handicap -{line:g}"
        )

    totals = pick_balanced_lines(
        drop_extremes(
            build_candidates(lines.points_total_offsets, total_line), lines.extreme_tolerance
        ),
        lines.max_points_lines,
        lines.balance_tolerance,
    )
    handicaps = pick_balanced_lines(
        drop_extremes(
            build_candidates(lines.points_handicap_offsets, handicap_line),
            lines.extreme_tolerance,
        ),
        lines.max_points_lines,
        lines.balance_tolerance,
    )
    return PointsMarkets(
        method="rally",
        expected_set_points=summary.average_set_points,
        expected_match_points=expected_points,
        expected_points_handicap=expected_diff,
        totals_lines=tuple(totals),
        handicap_lines=tuple(handicaps),
        first_set_total=first_set_total_line(
            summary, target, margin, config.solver.rally_tolerance
        ),
        rally=summary,
    )


__all__ = [
    "RALLY_UPPER_BOUND",
    "first_set_total_line",
    "price_points_markets",
    "rally_summary",
    "set_points_distribution",
    "set_win_probability_from_rally",
    "solve_rally_probability",
    "summary_from_set_probability",
]

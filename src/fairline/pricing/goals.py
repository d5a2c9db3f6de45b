"""Correlated goal model.

Expected-goal rates for each side are combined with a shared Poisson
component (``lambda_shared``) to produce a bivariate Poisson score grid.  The
shared component is carved out of both rates so the marginal goal
expectations stay at ``lambda_home`` and ``lambda_away``; the only thing it
changes is how often the two counts move together, which is what raises the
draw probability.  ``lambda_shared`` is calibrated against the league draw
rate by expanding a bracket and bisecting inside it.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Tuple

from .configuration import GoalModelConfig, PricingConfig
from .errors import InvalidProbabilityError, InvalidRateError, NumericDegeneracyError
from .margin import price_multi_way, price_two_way
from .models import (
    CalibrationResult,
    GoalMarkets,
    LeagueBaseline,
    ProbabilityDistribution,
    TeamRating,
)
from .numerics import bisect, expand_bracket, poisson_tail, poisson_vector

logger = logging.getLogger(__name__)

ScoreGrid = Dict[Tuple[int, int], float]


# ---------------------------------------------------------------------------
# Rates and grid bounds
# ---------------------------------------------------------------------------


def _floored_rate(value: float, name: str, floor: float) -> float:
    if not math.isfinite(value):
        raise InvalidRateError(f"{name} must be finite, got {value!r}")
    rate = max(float(value), floor)
    if not math.isfinite(rate) or rate <= 0.0:
        raise InvalidRateError(f"{name} must be positive after flooring, got {rate!r}")
    return rate


def expected_goal_rates(
    home: TeamRating,
    away: TeamRating,
    league: LeagueBaseline,
    config: GoalModelConfig,
) -> Tuple[float, float, float, float]:
    """Return ``(lambda_home, lambda_away, rating_difference, goal_difference)``.

    The rating gap is scaled by ``config.sensitivity`` into an expected goal
    difference which is split evenly between the two league averages.
    """

    rating_difference = float(home.current_rating) - float(away.current_rating)
    goal_difference = config.sensitivity * rating_difference
    lambda_home = _floored_rate(
        league.avg_home_goals + goal_difference / 2.0, "lambda_home", config.rate_floor
    )
    lambda_away = _floored_rate(
        league.avg_away_goals - goal_difference / 2.0, "lambda_away", config.rate_floor
    )
    return lambda_home, lambda_away, rating_difference, goal_difference


def goal_cap(lambda_home: float, lambda_away: float, config: GoalModelConfig) -> int:
    """Smallest per-side goal bound whose Poisson tails fall under tolerance."""

    cap = config.base_goal_cap
    while cap < config.max_goal_cap and (
        poisson_tail(lambda_home, cap) > config.tail_tolerance
        or poisson_tail(lambda_away, cap) > config.tail_tolerance
    ):
        cap += 1
    return cap


def _component_rates(
    lambda_home: float, lambda_away: float, lambda_shared: float
) -> Tuple[float, float, float]:
    if not math.isfinite(lambda_shared) or lambda_shared < 0.0:
        raise NumericDegeneracyError(
            f"shared goal rate must be finite and non-negative, got {lambda_shared!r}"
        )
    lam1 = lambda_home - lambda_shared
    lam2 = lambda_away - lambda_shared
    if lam1 < -1e-12 or lam2 < -1e-12:
        raise NumericDegeneracyError(
            f"shared goal rate {lambda_shared:.6g} exceeds a side rate "
            f"({lambda_home:.6g}, {lambda_away:.6g})"
        )
    return max(0.0, lam1), max(0.0, lam2), lambda_shared


# ---------------------------------------------------------------------------
# Bivariate Poisson evaluation
# ---------------------------------------------------------------------------


def joint_goal_distribution(
    lambda_home: float, lambda_away: float, lambda_shared: float, cap: int
) -> ScoreGrid:
    """Renormalised bivariate Poisson grid over ``0..cap`` goals per side."""

    lam1, lam2, lam3 = _component_rates(lambda_home, lambda_away, lambda_shared)
    home_vector = poisson_vector(lam1, cap)
    away_vector = poisson_vector(lam2, cap)
    shared_vector = poisson_vector(lam3, cap)
    distribution: ScoreGrid = {}
    total = 0.0
    for home in range(cap + 1):
        for away in range(cap + 1):
            probability = 0.0
            for k in range(min(home, away) + 1):
                probability += (
                    home_vector[home - k] * away_vector[away - k] * shared_vector[k]
                )
            distribution[(home, away)] = probability
            total += probability
    if total <= 0.0 or not math.isfinite(total):
        raise NumericDegeneracyError("goal grid carries no probability mass")
    scale = 1.0 / total
    for key in distribution:
        distribution[key] *= scale
    return distribution


def _outcome_masses(
    lambda_home: float, lambda_away: float, lambda_shared: float, cap: int
) -> Tuple[float, float, float]:
    # Same grid as joint_goal_distribution, summed through prefix sums so the
    # calibration loop stays linear in the cap.
    lam1, lam2, lam3 = _component_rates(lambda_home, lambda_away, lambda_shared)
    home_vector = poisson_vector(lam1, cap)
    away_vector = poisson_vector(lam2, cap)
    shared_vector = poisson_vector(lam3, cap)
    draw_cum: List[float] = []
    home_cum: List[float] = []
    away_cum: List[float] = []
    home_prefix = 0.0
    away_prefix = 0.0
    draw_acc = home_acc = away_acc = 0.0
    for j in range(cap + 1):
        draw_acc += home_vector[j] * away_vector[j]
        home_acc += home_vector[j] * away_prefix
        away_acc += away_vector[j] * home_prefix
        home_prefix += home_vector[j]
        away_prefix += away_vector[j]
        draw_cum.append(draw_acc)
        home_cum.append(home_acc)
        away_cum.append(away_acc)
    p_home = p_draw = p_away = 0.0
    for k in range(cap + 1):
        remaining = cap - k
        p_home += shared_vector[k] * home_cum[remaining]
        p_draw += shared_vector[k] * draw_cum[remaining]
        p_away += shared_vector[k] * away_cum[remaining]
    total = p_home + p_draw + p_away
    if total <= 0.0 or not math.isfinite(total):
        raise NumericDegeneracyError("goal grid carries no probability mass")
    return p_home / total, p_draw / total, p_away / total


def bivariate_outcome(
    lambda_home: float,
    lambda_away: float,
    lambda_shared: float,
    config: GoalModelConfig | None = None,
) -> Tuple[float, float, float]:
    """Home/draw/away probabilities for the given component rates."""

    config = config or GoalModelConfig()
    cap = goal_cap(lambda_home, lambda_away, config)
    return _outcome_masses(lambda_home, lambda_away, lambda_shared, cap)


def bivariate_draw(
    lambda_home: float,
    lambda_away: float,
    lambda_shared: float,
    config: GoalModelConfig | None = None,
) -> float:
    return bivariate_outcome(lambda_home, lambda_away, lambda_shared, config)[1]


def independent_draw(
    lambda_home: float, lambda_away: float, config: GoalModelConfig | None = None
) -> float:
    return bivariate_draw(lambda_home, lambda_away, 0.0, config)


# ---------------------------------------------------------------------------
# Calibration
# ---------------------------------------------------------------------------


def calibrate_correlation(
    lambda_home: float,
    lambda_away: float,
    target_draw: float | None,
    config: GoalModelConfig | None = None,
) -> CalibrationResult:
    """Solve ``lambda_shared`` so the model draw rate matches ``target_draw``.

    Without a target the configured generic correlation is used.  When the
    independent model already draws at least as often as the target the
    correlation is pinned at zero, and when even the bracket ceiling draws
    less often it is held at the ceiling (method ``"ceiling"``).
    """

    config = config or GoalModelConfig()
    lambda_home = _floored_rate(lambda_home, "lambda_home", config.rate_floor)
    lambda_away = _floored_rate(lambda_away, "lambda_away", config.rate_floor)
    ceiling = min(config.correlation_ceiling, lambda_home, lambda_away)

    if target_draw is None or not math.isfinite(target_draw):
        value = min(config.default_correlation, ceiling)
        return CalibrationResult(
            value=value,
            lower=0.0,
            upper=ceiling,
            iterations=0,
            residual=0.0,
            method="fixed",
        )
    if not 0.0 <= target_draw <= 1.0:
        raise InvalidProbabilityError(
            f"target draw rate must lie in [0, 1], got {target_draw!r}"
        )

    cap = goal_cap(lambda_home, lambda_away, config)

    def residual(shared: float) -> float:
        return _outcome_masses(lambda_home, lambda_away, shared, cap)[1] - target_draw

    base_residual = residual(0.0)
    if base_residual >= 0.0:
        return CalibrationResult(
            value=0.0,
            lower=0.0,
            upper=ceiling,
            iterations=0,
            residual=base_residual,
            method="independent",
            target=target_draw,
        )

    # With the shared rate carved out of both sides the draw rate tops out at
    # exp(-|lambda_home - lambda_away|); lopsided fixtures stop at the ceiling.
    ceiling_residual = residual(ceiling)
    if ceiling_residual <= 0.0:
        logger.debug(
            "Draw target %.4f unreachable for lambda %.3f/%.3f; shared rate held at %.5f",
            target_draw,
            lambda_home,
            lambda_away,
            ceiling,
        )
        return CalibrationResult(
            value=ceiling,
            lower=0.0,
            upper=ceiling,
            iterations=0,
            residual=ceiling_residual,
            method="ceiling",
            target=target_draw,
        )

    lower, upper, expansions = expand_bracket(residual, config.bracket_start, ceiling)
    root = bisect(
        residual,
        lower,
        upper,
        tolerance=config.calibration_tolerance,
        max_iterations=config.calibration_iterations,
    )
    logger.debug(
        "Calibrated shared goal rate %.5f for draw target %.4f (%d expansions, %d bisections)",
        root.root,
        target_draw,
        expansions,
        root.iterations,
    )
    return CalibrationResult(
        value=root.root,
        lower=lower,
        upper=upper,
        iterations=expansions + root.iterations,
        residual=root.residual,
        method="bisection",
        target=target_draw,
    )


# ---------------------------------------------------------------------------
# Market pricing
# ---------------------------------------------------------------------------


def price_goal_markets(
    home: TeamRating,
    away: TeamRating,
    league: LeagueBaseline,
    config: PricingConfig | None = None,
) -> GoalMarkets:
    """Price 1X2, goal totals, both-teams-to-score and correct scores."""

    config = config or PricingConfig()
    goals = config.goals
    lambda_home, lambda_away, rating_difference, goal_difference = expected_goal_rates(
        home, away, league, goals
    )
    target = league.draw_rate if league.has_draw_target else None
    calibration = calibrate_correlation(lambda_home, lambda_away, target, goals)
    cap = goal_cap(lambda_home, lambda_away, goals)
    grid = joint_goal_distribution(lambda_home, lambda_away, calibration.value, cap)

    p_home = p_draw = p_away = 0.0
    both_score = 0.0
    totals: Dict[int, float] = {}
    for (home_goals, away_goals), probability in grid.items():
        if home_goals > away_goals:
            p_home += probability
        elif home_goals < away_goals:
            p_away += probability
        else:
            p_draw += probability
        if home_goals > 0 and away_goals > 0:
            both_score += probability
        totals[home_goals + away_goals] = totals.get(home_goals + away_goals, 0.0) + probability

    total_goals = ProbabilityDistribution(totals)
    totals_lines = tuple(
        price_two_way(
            line,
            min(1.0, total_goals.probability_at_least(math.floor(line) + 1)),
            config.margin,
            label=f"Over/Under {line:g} goals",
        )
        for line in goals.total_goal_lines
    )
    ranked = sorted(grid.items(), key=lambda item: item[1], reverse=True)
    correct_scores = {
        f"{h}-{a}": probability for (h, a), probability in ranked[: goals.correct_score_limit]
    }
    match_result = price_multi_way(
        "1X2",
        [(home.display_name, p_home), ("Draw", p_draw), (away.display_name, p_away)],
        config.margin,
    )
    logger.debug(
        "Goal markets %s vs %s -> lambda %.3f/%.3f shared %.3f cap %d",
        home.display_name,
        away.display_name,
        lambda_home,
        lambda_away,
        calibration.value,
        cap,
    )
    return GoalMarkets(
        home=home,
        away=away,
        rating_difference=rating_difference,
        expected_goal_difference=goal_difference,
        lambda_home=lambda_home,
        lambda_away=lambda_away,
        p_home=p_home,
        p_draw=p_draw,
        p_away=p_away,
        calibration=calibration,
        goal_cap=cap,
        match_result=match_result,
        total_goals=total_goals,
        totals_lines=totals_lines,
        both_teams_to_score=price_two_way(
            0.5, min(1.0, both_score), config.margin, label="Both teams to score"
        ),
        correct_scores=correct_scores,
    )


__all__ = [
    "bivariate_draw",
    "bivariate_outcome",
    "calibrate_correlation",
    "expected_goal_rates",
    "goal_cap",
    "independent_draw",
    "joint_goal_distribution",
    "price_goal_markets",
]

from __future__ import annotations

import math

import pytest

from fairline.pricing.configuration import GoalModelConfig, PricingConfig
from fairline.pricing.errors import (
    InvalidProbabilityError,
    InvalidRateError,
    NumericDegeneracyError,
)
from fairline.pricing.goals import (
    bivariate_draw,
    bivariate_outcome,
    calibrate_correlation,
    expected_goal_rates,
    goal_cap,
    independent_draw,
    joint_goal_distribution,
    price_goal_markets,
)
from fairline.pricing.models import LeagueBaseline, TeamRating


def _team(name: str, rating: float) -> TeamRating:
    return TeamRating(team_id=name.lower(), display_name=name, current_rating=rating)


def test_expected_goal_rates_split_rating_gap() -> None:
    config = GoalModelConfig()
    league = LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1)

    lambda_home, lambda_away, diff, egd = expected_goal_rates(
        _team("Home", 10.0), _team("Away", 0.0), league, config
    )

    assert diff == pytest.approx(10.0)
    assert egd == pytest.approx(0.7)
    assert lambda_home == pytest.approx(1.85)
    assert lambda_away == pytest.approx(0.75)


def test_expected_goal_rates_floor_weak_side() -> None:
    config = GoalModelConfig()
    league = LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1)

    _, lambda_away, _, _ = expected_goal_rates(
        _team("Home", 100.0), _team("Away", 0.0), league, config
    )

    assert lambda_away == pytest.approx(config.rate_floor)


def test_sensitivity_is_an_explicit_parameter() -> None:
    league = LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1)
    flat = GoalModelConfig(sensitivity=0.0)

    lambda_home, lambda_away, _, _ = expected_goal_rates(
        _team("Home", 30.0), _team("Away", 0.0), league, flat
    )

    assert (lambda_home, lambda_away) == pytest.approx((1.5, 1.1))


@pytest.mark.parametrize("rating", [math.nan, math.inf])
def test_non_finite_rating_raises_invalid_rate(rating: float) -> None:
    league = LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1)
    with pytest.raises(InvalidRateError):
        expected_goal_rates(_team("Home", rating), _team("Away", 0.0), league, GoalModelConfig())


def test_invalid_rate_is_numeric_degeneracy() -> None:
    assert issubclass(InvalidRateError, NumericDegeneracyError)
    with pytest.raises(NumericDegeneracyError):
        calibrate_correlation(math.nan, 1.1, 0.27)


def test_goal_cap_grows_with_rate() -> None:
    config = GoalModelConfig()
    assert goal_cap(1.5, 1.1, config) == config.base_goal_cap
    assert goal_cap(6.0, 1.1, config) > config.base_goal_cap
    assert goal_cap(60.0, 60.0, config) == config.max_goal_cap


def test_joint_distribution_is_normalised() -> None:
    grid = joint_goal_distribution(1.5, 1.1, 0.2, 10)
    assert sum(grid.values()) == pytest.approx(1.0, abs=1e-12)
    assert all(value >= 0.0 for value in grid.values())
    assert len(grid) == 11 * 11


def test_joint_distribution_preserves_marginal_means() -> None:
    grid = joint_goal_distribution(1.5, 1.1, 0.4, 25)
    home_mean = sum(h * p for (h, _a), p in grid.items())
    away_mean = sum(a * p for (_h, a), p in grid.items())
    assert home_mean == pytest.approx(1.5, abs=1e-6)
    assert away_mean == pytest.approx(1.1, abs=1e-6)


def test_shared_rate_above_side_rate_is_rejected() -> None:
    with pytest.raises(NumericDegeneracyError):
        joint_goal_distribution(1.5, 1.1, 1.2, 10)


def test_fast_outcomes_match_full_grid() -> None:
    config = GoalModelConfig()
    cap = goal_cap(1.7, 0.9, config)
    grid = joint_goal_distribution(1.7, 0.9, 0.35, cap)
    p_home = sum(p for (h, a), p in grid.items() if h > a)
    p_draw = sum(p for (h, a), p in grid.items() if h == a)

    fast_home, fast_draw, fast_away = bivariate_outcome(1.7, 0.9, 0.35, config)

    assert fast_home == pytest.approx(p_home, abs=1e-12)
    assert fast_draw == pytest.approx(p_draw, abs=1e-12)
    assert fast_home + fast_draw + fast_away == pytest.approx(1.0, abs=1e-12)


def test_draw_probability_increases_with_shared_rate() -> None:
    draws = [bivariate_draw(1.5, 1.1, shared) for shared in (0.0, 0.2, 0.5, 0.9)]
    assert draws == sorted(draws)
    assert draws[-1] > draws[0]


def test_calibration_hits_league_draw_rate() -> None:
    assert independent_draw(1.5, 1.1) < 0.27

    result = calibrate_correlation(1.5, 1.1, 0.27)

    assert result.value > 0.0
    assert result.method == "bisection"
    assert result.within_bracket
    assert bivariate_draw(1.5, 1.1, result.value) == pytest.approx(0.27, abs=1e-3)


def test_calibration_clamps_to_zero_when_independent_draw_suffices() -> None:
    result = calibrate_correlation(1.5, 1.1, 0.1)
    assert result.value == 0.0
    assert result.method == "independent"


def test_calibration_without_target_uses_default_correlation() -> None:
    config = GoalModelConfig(default_correlation=0.2)
    result = calibrate_correlation(1.5, 1.1, None, config)
    assert result.value == pytest.approx(0.2)
    assert result.method == "fixed"

    tiny = calibrate_correlation(0.1, 0.1, None, config)
    assert tiny.value == pytest.approx(0.1)


def test_calibration_holds_unreachable_target_at_ceiling() -> None:
    config = GoalModelConfig(correlation_ceiling=0.05)
    result = calibrate_correlation(1.5, 1.1, 0.6, config)

    assert result.method == "ceiling"
    assert result.value == pytest.approx(0.05)
    assert result.within_bracket
    assert result.residual < 0.0
    assert bivariate_draw(1.5, 1.1, 0.05, config) < 0.6


def test_calibration_ceiling_is_the_weaker_side_rate() -> None:
    # Fully shared weaker side: the draw rate tops out at exp(-1.8).
    result = calibrate_correlation(2.2, 0.4, 0.27)

    assert result.method == "ceiling"
    assert result.value == pytest.approx(0.4)
    assert bivariate_draw(2.2, 0.4, result.value) == pytest.approx(math.exp(-1.8), abs=1e-3)


def test_price_goal_markets_for_lopsided_fixture(league, pricing_config) -> None:
    strong, weak = _team("Strong", 95.0), _team("Weak", 75.0)
    markets = price_goal_markets(strong, weak, league, pricing_config)

    assert markets.lambda_home == pytest.approx(2.2)
    assert markets.lambda_away == pytest.approx(0.4)
    assert markets.calibration.method == "ceiling"
    assert markets.p_home + markets.p_draw + markets.p_away == pytest.approx(1.0, abs=1e-6)
    assert markets.p_draw < 0.27
    assert markets.p_home > 0.5
    assert markets.match_result.fair_total == pytest.approx(1.0, abs=1e-6)


def test_calibration_rejects_target_outside_unit_interval() -> None:
    with pytest.raises(InvalidProbabilityError):
        calibrate_correlation(1.5, 1.1, 1.5)


def test_price_goal_markets(home_team, away_team, league, pricing_config) -> None:
    markets = price_goal_markets(home_team, away_team, league, pricing_config)

    assert markets.p_home + markets.p_draw + markets.p_away == pytest.approx(1.0, abs=1e-6)
    assert markets.p_home > markets.p_away
    assert markets.calibrated_correlation > 0.0
    assert markets.p_draw == pytest.approx(0.27, abs=1e-3)
    assert markets.match_result.labels == ("Arsenal", "Draw", "Chelsea")
    assert markets.match_result["Draw"].fair_probability == pytest.approx(markets.p_draw)
    assert markets.total_goals.total() == pytest.approx(1.0, abs=1e-9)
    assert len(markets.correct_scores) == pricing_config.goals.correct_score_limit
    assert [line.line for line in markets.totals_lines] == [0.5, 1.5, 2.5, 3.5, 4.5]
    zero_zero = markets.total_goals[0]
    assert markets.totals_lines[0].fair_probability_a == pytest.approx(1.0 - zero_zero)
    assert 0.0 < markets.both_teams_to_score.fair_probability_a < 1.0


def test_goal_markets_without_draw_rate_use_fixed_correlation(home_team, away_team) -> None:
    league = LeagueBaseline(avg_home_goals=1.5, avg_away_goals=1.1, draw_rate=None)
    markets = price_goal_markets(home_team, away_team, league)
    assert markets.calibration.method == "fixed"
    assert markets.calibrated_correlation == pytest.approx(0.15)


def test_goal_markets_apply_multi_way_margin(home_team, away_team, league, margined_config) -> None:
    markets = price_goal_markets(home_team, away_team, league, margined_config)

    assert markets.match_result.overround == pytest.approx(1.1)
    for selection in markets.match_result.selections:
        assert selection.margined_probability >= selection.fair_probability
    btts = markets.both_teams_to_score
    assert btts.overround == pytest.approx(1.05)


def test_goal_markets_use_explicit_config_only(home_team, away_team, league) -> None:
    loose = PricingConfig(goals=GoalModelConfig(sensitivity=0.2))
    tight = PricingConfig(goals=GoalModelConfig(sensitivity=0.01))

    strong = price_goal_markets(home_team, away_team, league, loose)
    weak = price_goal_markets(home_team, away_team, league, tight)
    again = price_goal_markets(home_team, away_team, league, loose)

    assert strong.p_home > weak.p_home
    assert again.p_home == pytest.approx(strong.p_home)

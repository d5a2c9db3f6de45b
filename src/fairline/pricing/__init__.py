"""Pricing engines for goal, series, set-format and points markets.

Each engine is a pure function of its inputs and an explicit
:class:`~fairline.pricing.configuration.PricingConfig`:

* :mod:`.goals` calibrates a bivariate Poisson goal model against a league
  draw rate and prices 1X2, totals and correct scores.
* :mod:`.series` enumerates best-of-N final scores from a per-frame
  probability, optionally from an in-play score.
* :mod:`.formats` inverts a fair match probability into a per-set
  probability and prices every set-based market.
* :mod:`.rally` recovers the rally probability behind a set probability and
  prices points totals and handicaps.
* :mod:`.margin` applies the overround shared by all of the above.
"""

from .configuration import (
    ConfigurationError,
    GoalModelConfig,
    LineConfig,
    MarginConfig,
    PointsModelConfig,
    PricingConfig,
    SolverConfig,
    load_pricing_config,
    validate_pricing_config,
)
from .errors import (
    InvalidFormatError,
    InvalidProbabilityError,
    InvalidRateError,
    InvalidScoreStateError,
    NumericDegeneracyError,
    PricingError,
    RootBracketError,
)
from .formats import (
    invert_match_probability,
    match_probability_from_set_probability,
    price_format_markets,
    price_format_markets_from_odds,
)
from .goals import (
    bivariate_draw,
    calibrate_correlation,
    expected_goal_rates,
    independent_draw,
    price_goal_markets,
)
from .margin import apply_margin, decimal_odds_to_fair_probabilities
from .models import (
    ENGINE_VERSION,
    CalibrationResult,
    FormatMarkets,
    GoalMarkets,
    LeagueBaseline,
    MarketLine,
    MatchState,
    PointsMarkets,
    PricedMarket,
    ProbabilityDistribution,
    RallySummary,
    ScoreState,
    SeriesDistribution,
    SeriesFormat,
    SeriesMarkets,
    TeamRating,
)
from .rally import price_points_markets, solve_rally_probability
from .series import match_probability, price_series_markets, series_distribution

__all__ = [
    "CalibrationResult",
    "ConfigurationError",
    "ENGINE_VERSION",
    "FormatMarkets",
    "GoalMarkets",
    "GoalModelConfig",
    "InvalidFormatError",
    "InvalidProbabilityError",
    "InvalidRateError",
    "InvalidScoreStateError",
    "LeagueBaseline",
    "LineConfig",
    "MarginConfig",
    "MarketLine",
    "MatchState",
    "NumericDegeneracyError",
    "PointsMarkets",
    "PointsModelConfig",
    "PricedMarket",
    "PricingConfig",
    "PricingError",
    "ProbabilityDistribution",
    "RallySummary",
    "RootBracketError",
    "ScoreState",
    "SeriesDistribution",
    "SeriesFormat",
    "SeriesMarkets",
    "SolverConfig",
    "TeamRating",
    "apply_margin",
    "bivariate_draw",
    "calibrate_correlation",
    "decimal_odds_to_fair_probabilities",
    "expected_goal_rates",
    "independent_draw",
    "invert_match_probability",
    "load_pricing_config",
    "match_probability",
    "match_probability_from_set_probability",
    "price_format_markets",
    "price_format_markets_from_odds",
    "price_goal_markets",
    "price_points_markets",
    "price_series_markets",
    "series_distribution",
    "solve_rally_probability",
    "validate_pricing_config",
]

"""Value objects shared by the pricing engines.

Everything here is immutable and created fresh per pricing call.  The engines
in :mod:`fairline.pricing.goals`, :mod:`fairline.pricing.series`,
:mod:`fairline.pricing.formats` and :mod:`fairline.pricing.rally` only ever
return these containers; callers own them outright.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Dict, Iterator, Mapping, Sequence, Tuple

from .errors import InvalidFormatError, InvalidScoreStateError

ENGINE_VERSION = "2.0"


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class TeamRating:
    """Power rating for a single side, as supplied by the ratings provider."""

    team_id: str
    display_name: str
    current_rating: float


@dataclasses.dataclass(frozen=True, slots=True)
class LeagueBaseline:
    """League scoring averages used to anchor expected-goal rates."""

    avg_home_goals: float
    avg_away_goals: float
    draw_rate: float | None = None

    @property
    def has_draw_target(self) -> bool:
        return self.draw_rate is not None and math.isfinite(self.draw_rate)


@dataclasses.dataclass(frozen=True, slots=True)
class ScoreState:
    """In-play score reported by the caller for repricing."""

    side_a_wins: int = 0
    side_b_wins: int = 0


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class ProbabilityDistribution:
    """Probability mass over a discrete count (goals, frames, sets or points)."""

    masses: Mapping[int, float]

    def __post_init__(self) -> None:
        ordered = {int(key): float(value) for key, value in sorted(self.masses.items())}
        object.__setattr__(self, "masses", ordered)

    def __iter__(self) -> Iterator[int]:
        return iter(self.masses)

    def __len__(self) -> int:
        return len(self.masses)

    def __getitem__(self, outcome: int) -> float:
        return self.masses.get(outcome, 0.0)

    def items(self) -> Sequence[Tuple[int, float]]:
        return tuple(self.masses.items())

    @property
    def support(self) -> Tuple[int, ...]:
        return tuple(self.masses)

    def total(self) -> float:
        return float(sum(self.masses.values()))

    def mean(self) -> float:
        total = self.total()
        if total <= 0.0:
            return 0.0
        return sum(value * mass for value, mass in self.masses.items()) / total

    def probability_at_least(self, threshold: float) -> float:
        return sum(mass for value, mass in self.masses.items() if value >= threshold)

    def normalized(self, tolerance: float = 1e-6) -> "ProbabilityDistribution":
        """Return a copy rescaled to unit mass when drift exceeds ``tolerance``."""

        total = self.total()
        if total <= 0.0 or abs(total - 1.0) <= tolerance:
            return self
        return ProbabilityDistribution(
            {value: mass / total for value, mass in self.masses.items()}
        )


# ---------------------------------------------------------------------------
# Series formats and state
# ---------------------------------------------------------------------------


def _validate_best_of(best_of: object) -> int:
    if isinstance(best_of, bool) or not isinstance(best_of, int):
        raise InvalidFormatError(f"best-of must be an integer, got {best_of!r}")
    if best_of <= 0 or best_of % 2 == 0:
        raise InvalidFormatError(
            f"best-of must be a positive odd integer, got {best_of}"
        )
    return best_of


@dataclasses.dataclass(frozen=True, slots=True)
class SeriesFormat:
    """A first-to-K series with the capabilities the engine offers for it."""

    key: str
    sets_to_win: int
    supports_in_play_state: bool = True
    handicap_margins: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        sets = self.sets_to_win
        if isinstance(sets, bool) or not isinstance(sets, int) or sets < 1:
            raise InvalidFormatError(
                f"sets-to-win must be a positive integer, got {sets!r}"
            )
        if not self.handicap_margins:
            margins = tuple(margin + 0.5 for margin in range(1, sets))
            object.__setattr__(self, "handicap_margins", margins)

    @property
    def best_of(self) -> int:
        return 2 * self.sets_to_win - 1

    @property
    def total_set_counts(self) -> Tuple[int, ...]:
        return tuple(range(self.sets_to_win, self.best_of + 1))

    @classmethod
    def from_key(cls, key: str) -> "SeriesFormat":
        """Resolve ``bo5``/``bo7``/``boN`` tokens into a format."""

        token = key.strip().lower()
        preset = _FORMAT_PRESETS.get(token)
        if preset is not None:
            return preset
        if token.startswith("bo") and token[2:].isdigit():
            return cls.for_best_of(int(token[2:]))
        raise InvalidFormatError(f"Unsupported series format {key!r}")

    @classmethod
    def for_best_of(cls, best_of: int) -> "SeriesFormat":
        best_of = _validate_best_of(best_of)
        sets_to_win = best_of // 2 + 1
        for preset in _FORMAT_PRESETS.values():
            if preset.sets_to_win == sets_to_win:
                return preset
        return cls(key=f"bo{best_of}", sets_to_win=sets_to_win)

    @classmethod
    def generic(cls, sets_to_win: int, *, supports_in_play_state: bool = False) -> "SeriesFormat":
        return cls(
            key="generic",
            sets_to_win=sets_to_win,
            supports_in_play_state=supports_in_play_state,
        )


_FORMAT_PRESETS: Dict[str, SeriesFormat] = {
    "bo5": SeriesFormat(key="bo5", sets_to_win=3, handicap_margins=(1.5, 2.5)),
    "bo7": SeriesFormat(key="bo7", sets_to_win=4, handicap_margins=(1.5, 2.5, 3.5)),
}


@dataclasses.dataclass(frozen=True, slots=True)
class MatchState:
    """Partially completed best-of-N series.

    A state where exactly one side has reached ``first_to`` is a completed
    match and prices deterministically.  Anything that cannot occur in the
    format raises :class:`InvalidScoreStateError`.
    """

    best_of: int
    frames_a: int = 0
    frames_b: int = 0

    def __post_init__(self) -> None:
        _validate_best_of(self.best_of)
        for name in ("frames_a", "frames_b"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidScoreStateError(f"{name} must be an integer, got {value!r}")
            if value < 0:
                raise InvalidScoreStateError(f"{name} cannot be negative, got {value}")
            if value > self.first_to:
                raise InvalidScoreStateError(
                    f"{name}={value} exceeds first-to-{self.first_to} in best-of-{self.best_of}"
                )
        if self.frames_a == self.first_to and self.frames_b == self.first_to:
            raise InvalidScoreStateError(
                f"score {self.frames_a}-{self.frames_b} has two winners in best-of-{self.best_of}"
            )

    @classmethod
    def from_score(cls, best_of: int, score: ScoreState | None = None) -> "MatchState":
        if score is None:
            return cls(best_of=best_of)
        return cls(
            best_of=best_of, frames_a=score.side_a_wins, frames_b=score.side_b_wins
        )

    @property
    def first_to(self) -> int:
        return self.best_of // 2 + 1

    @property
    def frames_played(self) -> int:
        return self.frames_a + self.frames_b

    @property
    def remaining_a(self) -> int:
        return self.first_to - self.frames_a

    @property
    def remaining_b(self) -> int:
        return self.first_to - self.frames_b

    @property
    def is_complete(self) -> bool:
        return (
            self.remaining_a <= 0
            or self.remaining_b <= 0
            or self.frames_played >= self.best_of
        )

    @property
    def winner(self) -> str | None:
        if self.remaining_a <= 0:
            return "A"
        if self.remaining_b <= 0:
            return "B"
        return None


# ---------------------------------------------------------------------------
# Priced markets
# ---------------------------------------------------------------------------


def _odds(probability: float) -> float:
    if probability <= 0.0:
        return math.inf
    return 1.0 / probability


@dataclasses.dataclass(frozen=True, slots=True)
class MarketLine:
    """Two-way market at a given line.

    Side A is the over / the handicap favourite / the first-named side.
    """

    line: float
    fair_probability_a: float
    fair_probability_b: float
    margined_probability_a: float
    margined_probability_b: float
    label: str = ""

    @property
    def fair_odds_a(self) -> float:
        return _odds(self.fair_probability_a)

    @property
    def fair_odds_b(self) -> float:
        return _odds(self.fair_probability_b)

    @property
    def odds_a(self) -> float:
        return _odds(self.margined_probability_a)

    @property
    def odds_b(self) -> float:
        return _odds(self.margined_probability_b)

    @property
    def overround(self) -> float:
        return self.margined_probability_a + self.margined_probability_b


@dataclasses.dataclass(frozen=True, slots=True)
class PricedSelection:
    label: str
    fair_probability: float
    margined_probability: float

    @property
    def fair_odds(self) -> float:
        return _odds(self.fair_probability)

    @property
    def odds(self) -> float:
        return _odds(self.margined_probability)


@dataclasses.dataclass(frozen=True, slots=True)
class PricedMarket:
    """Multi-way market such as 1X2, correct score, or exact total sets."""

    name: str
    selections: Tuple[PricedSelection, ...]

    def __getitem__(self, label: str) -> PricedSelection:
        for selection in self.selections:
            if selection.label == label:
                return selection
        raise KeyError(label)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(selection.label for selection in self.selections)

    @property
    def fair_total(self) -> float:
        return sum(selection.fair_probability for selection in self.selections)

    @property
    def overround(self) -> float:
        return sum(selection.margined_probability for selection in self.selections)


@dataclasses.dataclass(frozen=True, slots=True)
class CalibrationResult:
    """Scalar parameter produced by a bounded iterative search."""

    value: float
    lower: float
    upper: float
    iterations: int
    residual: float
    method: str
    target: float | None = None

    @property
    def within_bracket(self) -> bool:
        return self.lower <= self.value <= self.upper


# ---------------------------------------------------------------------------
# Engine outputs
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class GoalMarkets:
    home: TeamRating
    away: TeamRating
    rating_difference: float
    expected_goal_difference: float
    lambda_home: float
    lambda_away: float
    p_home: float
    p_draw: float
    p_away: float
    calibration: CalibrationResult
    goal_cap: int
    match_result: PricedMarket
    total_goals: ProbabilityDistribution
    totals_lines: Tuple[MarketLine, ...]
    both_teams_to_score: MarketLine
    correct_scores: Mapping[str, float]

    @property
    def calibrated_correlation(self) -> float:
        return self.calibration.value


@dataclasses.dataclass(frozen=True, slots=True)
class SeriesDistribution:
    """Final-score distribution of a series conditioned on its current state."""

    state: MatchState
    per_event_probability: float
    scores: Mapping[Tuple[int, int], float]

    @property
    def first_to(self) -> int:
        return self.state.first_to

    @property
    def match_probability_a(self) -> float:
        return sum(p for (a, _b), p in self.scores.items() if a == self.first_to)

    @property
    def match_probability_b(self) -> float:
        return sum(p for (_a, b), p in self.scores.items() if b == self.first_to)

    @property
    def frames(self) -> ProbabilityDistribution:
        masses: Dict[int, float] = {}
        for (a, b), probability in self.scores.items():
            masses[a + b] = masses.get(a + b, 0.0) + probability
        return ProbabilityDistribution(masses)

    @property
    def expected_frames(self) -> float:
        return self.frames.mean()


@dataclasses.dataclass(frozen=True, slots=True)
class SeriesMarkets:
    best_of: int
    first_to: int
    state: MatchState
    per_event_probability: float
    match: MarketLine
    distribution: SeriesDistribution
    frames_distribution: ProbabilityDistribution
    expected_frames: float
    totals_lines: Tuple[MarketLine, ...]
    handicap_lines: Tuple[MarketLine, ...]
    engine_version: str = ENGINE_VERSION


@dataclasses.dataclass(frozen=True, slots=True)
class RallySummary:
    """Per-set point expectations implied by a single rally probability."""

    rally_probability: float
    set_win_probability: float
    average_set_points: float
    points_on_win_a: float
    points_on_win_b: float
    diff_on_win_a: float
    diff_on_win_b: float

    def swapped(self) -> "RallySummary":
        return RallySummary(
            rally_probability=1.0 - self.rally_probability,
            set_win_probability=1.0 - self.set_win_probability,
            average_set_points=self.average_set_points,
            points_on_win_a=self.points_on_win_b,
            points_on_win_b=self.points_on_win_a,
            diff_on_win_a=-self.diff_on_win_b,
            diff_on_win_b=-self.diff_on_win_a,
        )


@dataclasses.dataclass(frozen=True, slots=True)
class PointsMarkets:
    method: str
    expected_set_points: float
    expected_match_points: float
    expected_points_handicap: float
    totals_lines: Tuple[MarketLine, ...] = ()
    handicap_lines: Tuple[MarketLine, ...] = ()
    first_set_total: MarketLine | None = None
    rally: RallySummary | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class FormatMarkets:
    format: SeriesFormat
    fair_match_probability: float
    set_probability: float
    inversion: CalibrationResult
    match: MarketLine
    first_set: MarketLine
    correct_score: PricedMarket
    total_sets: ProbabilityDistribution
    total_sets_market: PricedMarket
    expected_sets: float
    totals_lines: Tuple[MarketLine, ...]
    handicap_lines: Tuple[MarketLine, ...]
    points: PointsMarkets
    engine_version: str = ENGINE_VERSION

    @property
    def correct_score_distribution(self) -> Mapping[str, float]:
        return {
            selection.label: selection.fair_probability
            for selection in self.correct_score.selections
        }


__all__ = [
    "CalibrationResult",
    "ENGINE_VERSION",
    "FormatMarkets",
    "GoalMarkets",
    "LeagueBaseline",
    "MarketLine",
    "MatchState",
    "PointsMarkets",
    "PricedMarket",
    "PricedSelection",
    "ProbabilityDistribution",
    "RallySummary",
    "ScoreState",
    "SeriesDistribution",
    "SeriesFormat",
    "SeriesMarkets",
    "TeamRating",
]

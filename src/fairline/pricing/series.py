"""Best-of-N series engine.

Final-score probabilities are enumerated with the negative binomial form:
side A closes out the series after ``b`` further losses with probability
``C(ra - 1 + b, b) * p**ra * q**b``.  Every derived market (totals and
handicaps) is a sum over that distribution, so an in-play score flows through
to every line without special cases.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Tuple

from .configuration import LineConfig, MarginConfig, PricingConfig
from .errors import InvalidFormatError, InvalidProbabilityError
from .lines import build_candidates, dedupe_by_line, drop_extremes
from .margin import price_two_way
from .models import (
    MarketLine,
    MatchState,
    ScoreState,
    SeriesDistribution,
    SeriesMarkets,
)
from .numerics import comb

logger = logging.getLogger(__name__)


def check_event_probability(probability: float, name: str = "per-event probability") -> float:
    if (
        isinstance(probability, bool)
        or not isinstance(probability, (int, float))
        or not math.isfinite(probability)
        or not 0.0 <= probability <= 1.0
    ):
        raise InvalidProbabilityError(f"{name} must lie in [0, 1], got {probability!r}")
    return float(probability)


def resolve_state(best_of: int, state: MatchState | ScoreState | None) -> MatchState:
    """Coerce the caller's score into a validated :class:`MatchState`."""

    if isinstance(state, MatchState):
        if state.best_of != best_of:
            raise InvalidFormatError(
                f"score state is for best-of-{state.best_of}, not best-of-{best_of}"
            )
        return state
    return MatchState.from_score(best_of, state)


def series_distribution(
    probability_a: float,
    state: MatchState,
    tolerance: float = 1e-6,
) -> SeriesDistribution:
    """Distribution of final scores reachable from ``state``."""

    p = check_event_probability(probability_a)
    q = 1.0 - p
    first_to = state.first_to

    if state.is_complete:
        return SeriesDistribution(
            state=state,
            per_event_probability=p,
            scores={(state.frames_a, state.frames_b): 1.0},
        )

    need_a = state.remaining_a
    need_b = state.remaining_b
    scores: Dict[Tuple[int, int], float] = {}
    for losses in range(need_b):
        scores[(first_to, state.frames_b + losses)] = (
            comb(need_a - 1 + losses, losses) * p**need_a * q**losses
        )
    for losses in range(need_a):
        scores[(state.frames_a + losses, first_to)] = (
            comb(need_b - 1 + losses, losses) * q**need_b * p**losses
        )

    total = sum(scores.values())
    if total > 0.0 and abs(total - 1.0) > tolerance:
        logger.debug("Renormalising series distribution with mass %.9f", total)
        scores = {key: value / total for key, value in scores.items()}
    return SeriesDistribution(state=state, per_event_probability=p, scores=scores)


def match_probability(
    probability_a: float,
    best_of: int,
    state: MatchState | ScoreState | None = None,
) -> float:
    """Probability that side A wins the series."""

    match_state = resolve_state(best_of, state)
    return series_distribution(probability_a, match_state).match_probability_a


# ---------------------------------------------------------------------------
# Derived lines
# ---------------------------------------------------------------------------


def required_margin(line: float) -> int:
    """Smallest winning margin that covers a handicap ``line``."""

    return max(1, math.floor(line + 0.5))


def handicap_cover_probability(distribution: SeriesDistribution, line: float) -> float:
    needed = required_margin(line)
    first_to = distribution.first_to
    return sum(
        probability
        for (a, b), probability in distribution.scores.items()
        if a == first_to and a - b >= needed
    )


def totals_lines(
    distribution: SeriesDistribution,
    margin: MarginConfig,
    lines: LineConfig,
) -> List[MarketLine]:
    frames = distribution.frames
    support = frames.support
    if len(support) < 2:
        return []
    lowest, highest = support[0], support[-1]
    centre = math.floor(frames.mean() + 0.5)

    def build(offset: int) -> MarketLine:
        cut = min(max(centre + offset, lowest), highest)
        return price_two_way(
            cut - 0.5,
            min(1.0, frames.probability_at_least(cut)),
            margin,
            label=f"Over/Under {cut - 0.5:g} frames",
        )

    candidates = dedupe_by_line(build_candidates(lines.totals_offsets, build))
    return sorted(drop_extremes(candidates, lines.extreme_tolerance), key=lambda item: item.line)


def handicap_lines(
    distribution: SeriesDistribution,
    margin: MarginConfig,
    lines: LineConfig,
) -> List[MarketLine]:
    def build(offset: float) -> MarketLine:
        line = max(0.5, lines.handicap_base + offset)
        return price_two_way(
            line,
            min(1.0, handicap_cover_probability(distribution, line)),
            margin,
            label=f"Handicap -{line:g}",
        )

    candidates = dedupe_by_line(build_candidates(lines.handicap_offsets, build))
    return sorted(candidates, key=lambda item: item.line)


def price_series_markets(
    per_event_probability_a: float,
    best_of: int,
    state: MatchState | ScoreState | None = None,
    margin: MarginConfig | None = None,
    config: PricingConfig | None = None,
) -> SeriesMarkets:
    """Price winner, frame totals and frame handicaps for a best-of-N series.

    A score that already decides the series prices deterministically and
    produces no totals or handicap lines.
    """

    config = config or PricingConfig()
    margin = margin or config.margin
    match_state = resolve_state(best_of, state)
    distribution = series_distribution(
        per_event_probability_a, match_state, config.solver.distribution_tolerance
    )
    frames = distribution.frames

    if match_state.is_complete:
        totals: List[MarketLine] = []
        handicaps: List[MarketLine] = []
    else:
        totals = totals_lines(distribution, margin, config.lines)
        handicaps = handicap_lines(distribution, margin, config.lines)

    match = price_two_way(
        0.0, min(1.0, distribution.match_probability_a), margin, label="Match winner"
    )
    logger.debug(
        "Series bo%d at %d-%d with p=%.4f -> P(A)=%.6f",
        match_state.best_of,
        match_state.frames_a,
        match_state.frames_b,
        distribution.per_event_probability,
        match.fair_probability_a,
    )
    return SeriesMarkets(
        best_of=match_state.best_of,
        first_to=match_state.first_to,
        state=match_state,
        per_event_probability=distribution.per_event_probability,
        match=match,
        distribution=distribution,
        frames_distribution=frames,
        expected_frames=frames.mean(),
        totals_lines=tuple(totals),
        handicap_lines=tuple(handicaps),
    )


__all__ = [
    "check_event_probability",
    "handicap_cover_probability",
    "handicap_lines",
    "match_probability",
    "price_series_markets",
    "required_margin",
    "resolve_state",
    "series_distribution",
    "totals_lines",
]

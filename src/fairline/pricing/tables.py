"""Polars views over priced markets for tabular output."""

from __future__ import annotations

from typing import Iterable, Mapping, Tuple

import polars as pl

from .models import MarketLine, PricedMarket, ProbabilityDistribution


def distribution_frame(
    distribution: ProbabilityDistribution, outcome: str = "outcome"
) -> pl.DataFrame:
    """One row per outcome with its mass and cumulative mass."""

    outcomes = list(distribution.support)
    masses = [distribution[value] for value in outcomes]
    return pl.DataFrame(
        {outcome: outcomes, "probability": masses},
        schema={outcome: pl.Int64, "probability": pl.Float64},
    ).with_columns(pl.col("probability").cum_sum().alias("cumulative"))


def lines_frame(lines: Iterable[MarketLine]) -> pl.DataFrame:
    records = [
        {
            "label": line.label,
            "line": line.line,
            "fair_a": line.fair_probability_a,
            "fair_b": line.fair_probability_b,
            "margined_a": line.margined_probability_a,
            "margined_b": line.margined_probability_b,
        }
        for line in lines
    ]
    schema = {
        "label": pl.Utf8,
        "line": pl.Float64,
        "fair_a": pl.Float64,
        "fair_b": pl.Float64,
        "margined_a": pl.Float64,
        "margined_b": pl.Float64,
    }
    frame = pl.DataFrame(records, schema=schema)
    return frame.with_columns(
        (1.0 / pl.col("margined_a")).alias("odds_a"),
        (1.0 / pl.col("margined_b")).alias("odds_b"),
    )


def market_frame(market: PricedMarket) -> pl.DataFrame:
    """Selections of a multi-way market with decimal odds."""

    return pl.DataFrame(
        {
            "market": [market.name] * len(market.selections),
            "selection": list(market.labels),
            "fair": [selection.fair_probability for selection in market.selections],
            "margined": [selection.margined_probability for selection in market.selections],
        },
        schema={
            "market": pl.Utf8,
            "selection": pl.Utf8,
            "fair": pl.Float64,
            "margined": pl.Float64,
        },
    ).with_columns((1.0 / pl.col("margined")).alias("odds"))


def scores_frame(scores: Mapping[Tuple[int, int], float] | Mapping[str, float]) -> pl.DataFrame:
    labels = [key if isinstance(key, str) else f"{key[0]}-{key[1]}" for key in scores]
    return pl.DataFrame(
        {"score": labels, "probability": [float(value) for value in scores.values()]},
        schema={"score": pl.Utf8, "probability": pl.Float64},
    ).sort("probability", descending=True)


__all__ = ["distribution_frame", "lines_frame", "market_frame", "scores_frame"]

from __future__ import annotations

import polars as pl
import pytest

from fairline.pricing.formats import price_format_markets
from fairline.pricing.series import price_series_markets
from fairline.pricing.tables import distribution_frame, lines_frame, market_frame, scores_frame


def test_distribution_frame() -> None:
    markets = price_series_markets(0.6, 5)
    frame = distribution_frame(markets.frames_distribution, "frames")

    assert frame.columns == ["frames", "probability", "cumulative"]
    assert frame["frames"].to_list() == [3, 4, 5]
    assert frame["cumulative"][-1] == pytest.approx(1.0)


def test_lines_frame_includes_odds() -> None:
    markets = price_series_markets(0.6, 5)
    frame = lines_frame(markets.totals_lines)

    assert frame.height == len(markets.totals_lines)
    assert frame["line"].to_list() == [3.5, 4.5]
    assert frame["odds_a"][0] == pytest.approx(1 / markets.totals_lines[0].margined_probability_a)


def test_lines_frame_empty() -> None:
    frame = lines_frame([])
    assert frame.is_empty()
    assert "odds_b" in frame.columns


def test_market_frame() -> None:
    markets = price_format_markets(0.6, "bo5")
    frame = market_frame(markets.correct_score)

    assert frame.height == 6
    assert frame["market"].unique().to_list() == ["Correct score"]
    assert frame["fair"].sum() == pytest.approx(1.0)


def test_scores_frame_sorted_by_probability() -> None:
    frame = scores_frame({(1, 0): 0.2, (2, 1): 0.1, (0, 0): 0.3})
    assert frame["score"].to_list() == ["0-0", "1-0", "2-1"]
    assert frame.schema["probability"] == pl.Float64

from __future__ import annotations

import pytest

from fairline.pricing.lines import (
    build_candidates,
    dedupe_by_line,
    drop_extremes,
    pick_balanced_lines,
    round_to_half,
)
from fairline.pricing.models import MarketLine


def _line(value: float, probability: float) -> MarketLine:
    return MarketLine(
        line=value,
        fair_probability_a=probability,
        fair_probability_b=1.0 - probability,
        margined_probability_a=probability,
        margined_probability_b=1.0 - probability,
    )


@pytest.mark.parametrize(
    ("value", "expected"),
    [(2.24, 2.0), (2.25, 2.5), (2.74, 2.5), (2.75, 3.0), (-0.3, -0.5)],
)
def test_round_to_half(value: float, expected: float) -> None:
    assert round_to_half(value) == expected


def test_build_candidates_skips_none() -> None:
    lines = build_candidates([1, 2, 3], lambda offset: None if offset == 2 else _line(offset, 0.5))
    assert [line.line for line in lines] == [1, 3]


def test_dedupe_keeps_first_line() -> None:
    lines = dedupe_by_line([_line(3.5, 0.4), _line(3.5, 0.6), _line(4.5, 0.3)])
    assert [(line.line, line.fair_probability_a) for line in lines] == [(3.5, 0.4), (4.5, 0.3)]


def test_drop_extremes() -> None:
    lines = drop_extremes([_line(2.5, 1.0), _line(3.5, 0.7), _line(6.5, 0.0)], 1e-6)
    assert [line.line for line in lines] == [3.5]


def test_pick_balanced_lines_prefers_even_probabilities() -> None:
    lines = [_line(2.5, 0.9), _line(3.5, 0.62), _line(4.5, 0.45), _line(5.5, 0.2)]
    picked = pick_balanced_lines(lines, 2)
    assert [line.line for line in picked] == [3.5, 4.5]


def test_pick_balanced_lines_skips_near_duplicates() -> None:
    lines = [_line(3.5, 0.5), _line(4.5, 0.505), _line(5.5, 0.3)]
    picked = pick_balanced_lines(lines, 2, probability_tolerance=0.01)
    assert [line.line for line in picked] == [3.5, 5.5]


def test_pick_balanced_lines_empty() -> None:
    assert pick_balanced_lines([], 2) == []

"""Helpers for building and selecting totals and handicap lines."""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Sequence, TypeVar

from .models import MarketLine

T = TypeVar("T")


def round_to_half(value: float) -> float:
    return math.floor(value * 2.0 + 0.5) / 2.0


def build_candidates(
    offsets: Iterable[T], build: Callable[[T], MarketLine | None]
) -> List[MarketLine]:
    candidates: List[MarketLine] = []
    for offset in offsets:
        line = build(offset)
        if line is not None:
            candidates.append(line)
    return candidates


def dedupe_by_line(lines: Iterable[MarketLine]) -> List[MarketLine]:
    """Keep the first line seen at each one-decimal line value."""

    seen: Dict[float, MarketLine] = {}
    for line in lines:
        key = round(line.line, 1)
        if key not in seen:
            seen[key] = line
    return list(seen.values())


def drop_extremes(lines: Iterable[MarketLine], tolerance: float) -> List[MarketLine]:
    """Discard lines where either side is (numerically) certain."""

    return [
        line
        for line in lines
        if tolerance < line.fair_probability_a < 1.0 - tolerance
        and tolerance < line.fair_probability_b < 1.0 - tolerance
    ]


def pick_balanced_lines(
    lines: Sequence[MarketLine],
    max_count: int,
    probability_tolerance: float = 0.01,
) -> List[MarketLine]:
    """Select up to ``max_count`` lines whose side-A probability is nearest 0.5.

    Lines within ``probability_tolerance`` of an already selected line are
    treated as duplicates.  The result is ordered by line value.
    """

    if not lines:
        return []
    ranked = sorted(
        dedupe_by_line(lines),
        key=lambda line: (abs(line.fair_probability_a - 0.5), abs(line.line)),
    )
    selected: List[MarketLine] = []
    for line in ranked:
        if any(
            abs(existing.fair_probability_a - line.fair_probability_a) < probability_tolerance
            for existing in selected
        ):
            continue
        selected.append(line)
        if len(selected) >= max_count:
            break
    return sorted(selected, key=lambda line: line.line)


__all__ = [
    "build_candidates",
    "dedupe_by_line",
    "drop_extremes",
    "pick_balanced_lines",
    "round_to_half",
]

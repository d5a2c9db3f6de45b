"""Odds conversions at the edges of the pricing engines.

The engines work in probabilities throughout.  These helpers turn quoted
American prices into decimal odds on the way in and priced probabilities into
display odds on the way out.
"""

from __future__ import annotations

import math

from .errors import InvalidProbabilityError

OddsValue = int | float | str

__all__ = [
    "OddsValue",
    "american_to_decimal",
    "decimal_to_american",
    "normalise_american_odds",
    "probability_to_american",
    "probability_to_decimal",
]


def normalise_american_odds(value: OddsValue) -> int:
    """Coerce American odds such as ``"+150"`` or ``-120.0`` into an integer."""

    if isinstance(value, bool):
        raise InvalidProbabilityError(f"American odds must be numeric, got {value!r}")
    if isinstance(value, int):
        price = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise InvalidProbabilityError(f"American odds must be finite, got {value!r}")
        price = int(round(value))
    else:
        stripped = value.strip().lstrip("+")
        try:
            price = int(stripped)
        except ValueError as exc:
            raise InvalidProbabilityError(f"unreadable American odds {value!r}") from exc
    if -100 < price < 100:
        raise InvalidProbabilityError(
            f"American odds must be at least +100 or at most -100, got {price}"
        )
    return price


def american_to_decimal(value: OddsValue) -> float:
    price = normalise_american_odds(value)
    if price > 0:
        return 1.0 + price / 100.0
    return 1.0 + 100.0 / -price


def decimal_to_american(decimal_odds: float) -> int:
    """Convert decimal odds to their American representation.

    Even money (2.0) is reported as ``+100``.
    """

    if not math.isfinite(decimal_odds) or decimal_odds <= 1.0:
        raise InvalidProbabilityError(f"decimal odds must exceed 1.0, got {decimal_odds!r}")
    if decimal_odds >= 2.0:
        return int(round((decimal_odds - 1.0) * 100.0))
    return int(round(-100.0 / (decimal_odds - 1.0)))


def probability_to_decimal(probability: float) -> float:
    """Decimal price for a (possibly margined) probability in ``(0, 1)``."""

    if not 0.0 < probability < 1.0:
        raise InvalidProbabilityError(
            f"probability must lie strictly between 0 and 1, got {probability!r}"
        )
    return 1.0 / probability


def probability_to_american(probability: float) -> int:
    return decimal_to_american(probability_to_decimal(probability))

from __future__ import annotations

import pytest

from fairline.pricing.errors import InvalidProbabilityError
from fairline.pricing.utils import (
    american_to_decimal,
    decimal_to_american,
    normalise_american_odds,
    probability_to_american,
    probability_to_decimal,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("+150", 150), ("150", 150), ("-120", -120), (-110.0, -110), (200, 200)],
)
def test_normalise_american_odds(raw: object, expected: int) -> None:
    assert normalise_american_odds(raw) == expected


@pytest.mark.parametrize("raw", ["", "evens", 50, True, float("nan")])
def test_normalise_american_odds_rejects_garbage(raw: object) -> None:
    with pytest.raises(InvalidProbabilityError):
        normalise_american_odds(raw)


def test_american_and_decimal_conversions() -> None:
    assert american_to_decimal("+150") == pytest.approx(2.5)
    assert american_to_decimal(-200) == pytest.approx(1.5)
    assert decimal_to_american(2.5) == 150
    assert decimal_to_american(1.5) == -200
    assert decimal_to_american(2.0) == 100


def test_probability_display_odds() -> None:
    assert probability_to_decimal(0.4) == pytest.approx(2.5)
    assert probability_to_american(0.4) == 150
    assert probability_to_american(0.6) == -150
    with pytest.raises(InvalidProbabilityError):
        probability_to_decimal(1.0)
    with pytest.raises(InvalidProbabilityError):
        decimal_to_american(1.0)

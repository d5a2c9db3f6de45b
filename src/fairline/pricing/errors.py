"""Exceptions raised by the pricing engines.

Every error is raised synchronously to the caller.  Nothing in
:mod:`fairline.pricing` retries or swallows these; bounded bracket widening
during calibration is part of the algorithms themselves.
"""

from __future__ import annotations


class PricingError(ValueError):
    """Base class for pricing failures."""


class InvalidProbabilityError(PricingError):
    """Raised when a probability falls outside its admissible interval."""


class InvalidFormatError(PricingError):
    """Raised for an unsupported series format or best-of value."""


class InvalidScoreStateError(PricingError):
    """Raised when an in-play score cannot occur in the configured format."""


class RootBracketError(PricingError, ArithmeticError):
    """Raised when a monotone inversion cannot bracket a sign change."""


class NumericDegeneracyError(PricingError, ArithmeticError):
    """Raised when a rate or probability collapses to a non-finite value."""


class InvalidRateError(NumericDegeneracyError):
    """Raised when an expected-goal rate is non-finite or non-positive."""


__all__ = [
    "InvalidFormatError",
    "InvalidProbabilityError",
    "InvalidRateError",
    "InvalidScoreStateError",
    "NumericDegeneracyError",
    "PricingError",
    "RootBracketError",
]

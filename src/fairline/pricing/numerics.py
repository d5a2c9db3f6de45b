"""Numerical primitives shared by the pricing engines."""

from __future__ import annotations

import dataclasses
import math
from typing import Callable, List

from .errors import NumericDegeneracyError, RootBracketError


def comb(n: int, k: int) -> float:
    """Binomial coefficient in product form.

    Avoids factorial division so best-of values into the thirties stay exact
    in double precision.
    """

    if k < 0 or k > n:
        return 0.0
    k = min(k, n - k)
    result = 1.0
    for i in range(1, k + 1):
        result = result * (n - k + i) / i
    return result


def poisson_vector(lam: float, cap: int) -> List[float]:
    """Poisson masses for counts ``0..cap`` using the recurrence form."""

    probabilities = [0.0] * (cap + 1)
    probabilities[0] = math.exp(-lam)
    for k in range(1, cap + 1):
        probabilities[k] = probabilities[k - 1] * lam / k
    return probabilities


def poisson_cdf(k: int, lam: float) -> float:
    cumulative = 0.0
    term = math.exp(-lam)
    cumulative += term
    for i in range(1, k + 1):
        term *= lam / i
        cumulative += term
    return min(cumulative, 1.0)


def poisson_tail(lam: float, cap: int) -> float:
    """Probability that a Poisson(``lam``) count exceeds ``cap``."""

    return max(0.0, 1.0 - poisson_cdf(cap, lam))


@dataclasses.dataclass(frozen=True, slots=True)
class RootResult:
    root: float
    iterations: int
    residual: float
    lower: float
    upper: float


def bisect(
    func: Callable[[float], float],
    lower: float,
    upper: float,
    *,
    tolerance: float,
    max_iterations: int,
) -> RootResult:
    """Bisection on a bracket that must straddle a sign change.

    Raises :class:`RootBracketError` when ``func`` has the same sign at both
    endpoints rather than returning a boundary value.
    """

    f_lower = func(lower)
    f_upper = func(upper)
    if not (math.isfinite(f_lower) and math.isfinite(f_upper)):
        raise NumericDegeneracyError(
            f"non-finite function value on bracket [{lower}, {upper}]"
        )
    if f_lower == 0.0:
        return RootResult(lower, 0, 0.0, lower, upper)
    if f_upper == 0.0:
        return RootResult(upper, 0, 0.0, lower, upper)
    if f_lower * f_upper > 0.0:
        raise RootBracketError(
            f"no sign change on [{lower}, {upper}]: "
            f"f(lower)={f_lower:.3g}, f(upper)={f_upper:.3g}"
        )
    lo, hi = lower, upper
    mid = 0.5 * (lo + hi)
    f_mid = func(mid)
    iterations = 1
    while abs(f_mid) >= tolerance and iterations < max_iterations:
        if f_lower * f_mid <= 0.0:
            hi = mid
        else:
            lo = mid
            f_lower = f_mid
        mid = 0.5 * (lo + hi)
        f_mid = func(mid)
        iterations += 1
    return RootResult(mid, iterations, f_mid, lower, upper)


def expand_bracket(
    func: Callable[[float], float],
    start: float,
    ceiling: float,
) -> tuple[float, float, int]:
    """Double ``start`` until ``func`` turns positive or ``ceiling`` is hit.

    ``func(0)`` is assumed negative.  Returns the ``(lower, upper)`` bracket
    and the number of expansions performed.  A ceiling that still evaluates
    non-positive is a :class:`RootBracketError`.
    """

    lower = 0.0
    upper = min(start, ceiling)
    expansions = 0
    while func(upper) <= 0.0:
        if upper >= ceiling:
            raise RootBracketError(
                f"target not reachable below ceiling {ceiling:.6g}"
            )
        lower = upper
        upper = min(upper * 2.0, ceiling)
        expansions += 1
    return lower, upper, expansions


__all__ = [
    "RootResult",
    "bisect",
    "comb",
    "expand_bracket",
    "poisson_cdf",
    "poisson_tail",
    "poisson_vector",
]

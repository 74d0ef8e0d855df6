"""Probability densities and counting distributions used by the toy studies."""

from __future__ import annotations

import math
from collections.abc import Iterator

__all__ = [
    "factorial",
    "log_factorial",
    "binomial_coefficient",
    "binomial",
    "smart_binomial",
    "poisson",
    "smart_poisson",
    "gaussian",
    "chi_square_pdf",
]


def _log(x: float) -> float:
    """Natural logarithm following IEEE conventions: log(0) = -inf, log(<0) = nan."""
    if x > 0:
        return math.log(x)
    if x == 0:
        return -math.inf
    return math.nan


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return math.inf


def _pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf
    except ValueError:
        if base == 0 and exponent < 0:
            return math.inf
        return math.nan


def _steps(start: float, stop: float) -> Iterator[float]:
    """Yield start, start + 1, ... while the value does not exceed stop."""
    value = float(start)
    while value <= stop:
        yield value
        value += 1.0


def factorial(n: float) -> float:
    """Return n! as a float; it overflows to infinity beyond n = 170."""
    result = 1.0
    while n > 1.0:
        result *= n
        n -= 1.0
    return result


def log_factorial(n: float) -> float:
    """Return log(n!) as a sum of logarithms."""
    total = 0.0
    while n > 1.0:
        total += _log(n)
        n -= 1.0
    return total


def binomial_coefficient(n: float, k: float) -> float:
    """Return the binomial coefficient C(n, k), with n and k truncated to integers."""
    n_int, k_int = int(n), int(k)
    if n_int < 0 or k_int < 0 or k_int > n_int:
        raise ValueError(f"binomial coefficient undefined for n={n}, k={k}")
    try:
        return float(math.comb(n_int, k_int))
    except OverflowError:
        return math.inf


def binomial(k: float, n: float, p: float, amplitude: float = 1.0) -> float:
    """Straightforward binomial probability of k successes in n trials, times amplitude."""
    return (
        amplitude
        * binomial_coefficient(n, k)
        * _pow(p, k)
        * _pow(1.0 - p, n - k)
    )


def smart_binomial(k: float, n: float, p: float, amplitude: float = 1.0) -> float:
    """Binomial probability computed through logarithms, usable for large n."""
    sum_1 = sum(_log(i) for i in _steps(float(int(n - k + 1)), n))
    sum_2 = sum(_log(i) for i in _steps(1.0, k))
    exp_1 = k * _log(p)
    exp_2 = (n - k) * _log(1.0 - p)
    return amplitude * _exp(sum_1 - sum_2 + exp_1 + exp_2)


def poisson(n: float, lam: float, amplitude: float = 1.0) -> float:
    """Straightforward Poisson probability; it breaks down beyond n = 170."""
    return amplitude * _pow(lam, n) * _exp(-lam) / factorial(n)


def smart_poisson(n: float, lam: float, amplitude: float = 1.0) -> float:
    """Poisson probability computed through logarithms, usable for large n."""
    return amplitude * _exp(-lam + n * _log(lam) - log_factorial(n))


def gaussian(x: float, mean: float, sigma: float) -> float:
    """Normal probability density."""
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    return _exp(-0.5 * ((x - mean) / sigma) ** 2) / math.sqrt(2.0 * math.pi) / sigma


def chi_square_pdf(x2: float, ndf: float) -> float:
    """Chi-square probability density at x2 for ndf degrees of freedom."""
    if x2 < 0:
        raise ValueError("chi-square value must not be negative")
    if ndf <= 0:
        raise ValueError("number of degrees of freedom must be positive")
    x = math.sqrt(x2)
    p = _pow(2.0, -0.5 * ndf)
    p *= _pow(x, ndf - 2.0)
    p *= _exp(-0.5 * x2)
    return p / math.gamma(0.5 * ndf)
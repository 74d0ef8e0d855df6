"""Waiting times between uniformly scattered events follow an exponential law."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass

import numpy as np
from scipy.optimize import minimize_scalar
from scipy.special import logsumexp

from toystats.histogram import Histogram

__all__ = [
    "ExponentialFit",
    "generate_delta_times",
    "theoretical_rate",
    "fit_exponential",
    "main",
]


@dataclass(frozen=True)
class ExponentialFit:
    """Result of fitting r1 * n * w * exp(-r2 * t) to a histogram of time gaps."""

    norm_rate: float
    rate: float
    rate_error: float
    n: int
    bin_width: float

    def __call__(self, t):
        return self.norm_rate * self.n * self.bin_width * np.exp(-self.rate * np.asarray(t))


def generate_delta_times(n, t_min, t_max, rng=None) -> np.ndarray:
    """Draw n uniform times, sort them, and return the gaps between neighbours.

    The first gap is measured from time zero.
    """
    if n < 1:
        raise ValueError("need at least one event")
    if not t_max > t_min:
        raise ValueError("t_max must be above t_min")
    rng = np.random.default_rng() if rng is None else rng
    times = np.sort(rng.uniform(t_min, t_max, int(n)))
    return np.diff(times, prepend=0.0)


def theoretical_rate(n, t_min, t_max) -> float:
    """Expected event rate: n events over the time window."""
    if not t_max > t_min:
        raise ValueError("t_max must be above t_min")
    return n / (t_max - t_min)


def fit_exponential(histogram: Histogram, n) -> ExponentialFit:
    """Binned Poisson maximum-likelihood fit of r1 * n * w * exp(-r2 * t).

    The normalisation r1 is profiled out analytically; the rate r2 is found
    by a one-dimensional search started from 1 and 100.
    """
    if n <= 0:
        raise ValueError("n must be positive")
    counts = histogram.contents
    total = float(counts.sum())
    if total <= 0:
        raise ValueError("cannot fit an empty histogram")
    centers = histogram.centers
    sum_kx = float(np.dot(counts, centers))

    def profile(rate: float) -> float:
        return total * float(logsumexp(-rate * centers)) + rate * sum_kx

    result = minimize_scalar(profile, bracket=(1.0, 100.0))
    rate = float(result.x)
    log_s = float(logsumexp(-rate * centers))
    norm_rate = math.exp(math.log(total) - math.log(n * histogram.width) - log_s)

    weights = np.exp(-rate * centers - log_s)
    mean = float(np.dot(weights, centers))
    variance = float(np.dot(weights, (centers - mean) ** 2))
    rate_error = 1.0 / math.sqrt(total * variance) if variance > 0 else math.inf
    return ExponentialFit(norm_rate, rate, rate_error, int(n), histogram.width)


def _plot(histogram: Histogram, fit: ExponentialFit, output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(16, 9))
    ax.stairs(histogram.contents, histogram.bin_edges(), color="black")
    t = np.linspace(histogram.low, histogram.high, 10000)
    ax.plot(t, fit(t), color="red", label=f"r1 = {fit.norm_rate:.4g}, r2 = {fit.rate:.4g}")
    ax.set_xlabel("δt [bananas]")
    ax.set_ylabel("Entries")
    ax.legend()
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Fit the gaps between uniformly distributed times with an exponential."
    )
    parser.add_argument("--events", type=int, default=1_000_000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="ExponentialFromUniform.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    t_min, t_max = 0.0, 1.0e3
    rng = np.random.default_rng(args.seed)
    deltas = generate_delta_times(args.events, t_min, t_max, rng)

    histogram = Histogram(1000, 0.0, 1.01 * float(deltas.max()))
    histogram.fill(deltas)

    print(f"Theoretical value for rate: {theoretical_rate(args.events, t_min, t_max):g}")
    fit = fit_exponential(histogram, args.events)
    print(f"r_1 = {fit.norm_rate:g}")
    print(f"r_2 = {fit.rate:g} +- {fit.rate_error:g}")

    if not args.no_plot:
        _plot(histogram, fit, args.output, args.show)
    return 0
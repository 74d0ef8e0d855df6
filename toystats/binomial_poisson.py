"""Toy counting experiments compared with the binomial and Poisson distributions."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass

import numpy as np

from toystats.distributions import smart_binomial, smart_poisson
from toystats.histogram import Histogram

__all__ = [
    "CountingCase",
    "histogram_range",
    "decay_probability",
    "simulate_uniform_case",
    "simulate_decay_case",
    "run_poisson",
    "run_decay",
    "main",
]

T_MIN = 0.0
T_MAX = 1.0e3
HALFLIFE_PO210 = 138.4  # days
POISSON_TRIALS = (10, 100, 1000)
POISSON_FRACTIONS = (0.01, 0.05, 0.1, 0.5)
DECAY_NUCLEI = 100
DECAY_INTERVALS = (0.1, 0.2, 0.5, 1.0, 2.0, 3.0, 4.0, 5.0, 6.0)
_CHUNK = 2_000_000


@dataclass
class CountingCase:
    """Simulated counts and the binomial and Poisson predictions for one setting."""

    label: str
    n: int
    p: float
    lam: float
    data: Histogram
    binomial: Histogram
    poisson: Histogram


def histogram_range(expected):
    """Return (low, high, nbins) of unit bins covering expected +- 7 sqrt(expected)."""
    if expected < 0:
        raise ValueError("expected count must not be negative")
    spread = 7.0 * math.sqrt(expected)
    low = max(-0.5 + int(expected - spread), -0.5)
    high = 0.5 + int(expected + spread)
    return low, high, int(high - low)


def decay_probability(dt, halflife) -> float:
    """Probability that a nucleus decays within dt half-lives."""
    if halflife <= 0:
        raise ValueError("halflife must be positive")
    if dt < 0:
        raise ValueError("dt must not be negative")
    rate = math.log(2.0) / halflife
    return -math.expm1(-rate * dt * halflife)


def _count_below(draw, n: int, threshold: float, n_toys: int) -> np.ndarray:
    """Count, for each toy, how many of n drawn values fall below threshold."""
    chunk = max(1, _CHUNK // n)
    parts = []
    remaining = n_toys
    while remaining > 0:
        size = min(chunk, remaining)
        parts.append((draw((size, n)) < threshold).sum(axis=1))
        remaining -= size
    return np.concatenate(parts)


def _build_case(label: str, n: int, p: float, counts: np.ndarray, n_toys: int) -> CountingCase:
    lam = p * n
    low, high, nbins = histogram_range(lam)
    data = Histogram(nbins, low, high)
    data.fill(counts)
    binomial_histogram = Histogram(nbins, low, high)
    poisson_histogram = Histogram(nbins, low, high)
    # The last bin is left empty, as in the reference study.
    for index in range(nbins - 1):
        k = binomial_histogram.bin_center(index)
        value = smart_binomial(k, n, p, n_toys)
        if not math.isnan(value):
            binomial_histogram.set_content(index, value)
        poisson_histogram.set_content(index, smart_poisson(k, lam, n_toys))
    return CountingCase(label, n, p, lam, data, binomial_histogram, poisson_histogram)


def _check_counts(n, n_toys) -> None:
    if int(n) < 1:
        raise ValueError("n must be at least one")
    if int(n_toys) < 1:
        raise ValueError("n_toys must be positive")


def simulate_uniform_case(n, p, n_toys=100_000, rng=None) -> CountingCase:
    """Count how many of n uniform times fall in the first fraction p of the window."""
    _check_counts(n, n_toys)
    if not 0.0 < p < 1.0:
        raise ValueError("p must lie strictly between 0 and 1")
    rng = np.random.default_rng() if rng is None else rng
    n, n_toys = int(n), int(n_toys)
    threshold = p * (T_MIN + T_MAX) - T_MIN
    counts = _count_below(
        lambda shape: rng.uniform(T_MIN, T_MAX, shape), n, threshold, n_toys
    )
    return _build_case(f"N={n} p={p:f}", n, p, counts, n_toys)


def simulate_decay_case(n, dt, halflife=HALFLIFE_PO210, n_toys=10_000, rng=None) -> CountingCase:
    """Count how many of n nuclei decay within dt half-lives."""
    _check_counts(n, n_toys)
    p = decay_probability(dt, halflife)
    rng = np.random.default_rng() if rng is None else rng
    n, n_toys = int(n), int(n_toys)
    scale = halflife / math.log(2.0)
    counts = _count_below(
        lambda shape: rng.exponential(scale, shape), n, dt * halflife, n_toys
    )
    return _build_case(f"N={n} dt={dt:f} T1/2", n, p, counts, n_toys)


def run_poisson(n_toys=100_000, rng=None) -> list[CountingCase]:
    """Run every combination of trial count and success fraction."""
    rng = np.random.default_rng() if rng is None else rng
    return [
        simulate_uniform_case(n, p, n_toys, rng)
        for n in POISSON_TRIALS
        for p in POISSON_FRACTIONS
    ]


def run_decay(n_toys=10_000, rng=None) -> list[CountingCase]:
    """Run the decay study for each measurement interval."""
    rng = np.random.default_rng() if rng is None else rng
    return [
        simulate_decay_case(DECAY_NUCLEI, dt, HALFLIFE_PO210, n_toys, rng)
        for dt in DECAY_INTERVALS
    ]


def _plot(cases: list[CountingCase], rows: int, cols: int, output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(rows, cols, figsize=(16, 9), squeeze=False)
    for ax, case in zip(axes.flat, cases):
        edges = case.data.bin_edges()
        ax.stairs(case.data.contents, edges, color="black", label="data")
        ax.stairs(case.binomial.contents, edges, color="red", label="binomial")
        ax.stairs(case.poisson.contents, edges, color="blue", label="Poisson")
        ax.set_title(case.label, fontsize=8)
        ax.set_xlabel("k")
    axes.flat[0].legend(fontsize=7)
    fig.tight_layout()
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare toy counting experiments with binomial and Poisson predictions."
    )
    parser.add_argument("--study", choices=("poisson", "decay"), default="poisson")
    parser.add_argument("--toys", type=int, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default=None)
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    rng = np.random.default_rng(args.seed)
    if args.study == "poisson":
        cases = run_poisson(args.toys or 100_000, rng)
        rows, cols, default_output = len(POISSON_TRIALS), len(POISSON_FRACTIONS), "Poisson.png"
    else:
        cases = run_decay(args.toys or 10_000, rng)
        rows, cols, default_output = 3, 3, "RadioactiveDecayBinomialPoisson.png"

    for case in cases:
        print(f"{case.label}: lambda = {case.lam:g}, mean count = {case.data.mean():g}")

    if not args.no_plot:
        _plot(cases, rows, cols, args.output or default_output, args.show)
    return 0
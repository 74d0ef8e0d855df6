"""Correlation between successive points: independent draws versus a Metropolis chain."""

from __future__ import annotations

import argparse

import numpy as np

from toystats.distributions import gaussian
from toystats.histogram import Histogram

__all__ = ["independent_differences", "metropolis_hastings", "main"]

_BATCH = 4096


def independent_differences(mean, sigma, n, rng=None):
    """Draw n + 1 Gaussian values; return the last n and their differences to the previous."""
    if int(n) < 1:
        raise ValueError("n must be positive")
    if not sigma > 0:
        raise ValueError("sigma must be positive")
    rng = np.random.default_rng() if rng is None else rng
    draws = rng.normal(mean, sigma, int(n) + 1)
    return draws[1:], np.diff(draws)


def metropolis_hastings(target, start=None, proposal_sigma=0.3, n_accepted=100_001,
                        burn_in=1000, rng=None):
    """Sample target with a Gaussian random-walk Metropolis chain.

    The chain runs until n_accepted + burn_in proposals are accepted; the
    first burn_in + 1 accepted points are discarded. Returns the recorded
    points and the step that led to each of them. Without a start, the chain
    begins at a uniform point in [-1, 1).
    """
    if not proposal_sigma > 0:
        raise ValueError("proposal_sigma must be positive")
    if int(n_accepted) < 1:
        raise ValueError("n_accepted must be positive")
    if int(burn_in) < 0:
        raise ValueError("burn_in must not be negative")
    rng = np.random.default_rng() if rng is None else rng

    current = float(rng.uniform(-1.0, 1.0)) if start is None else float(start)
    current_y = target(current)
    total = int(n_accepted) + int(burn_in)
    accepted = 0
    points: list[float] = []
    steps: list[float] = []
    while accepted < total:
        moves = rng.normal(0.0, proposal_sigma, _BATCH)
        tests = rng.random(_BATCH)
        for move, r in zip(moves, tests):
            x = current + float(move)
            y = target(x)
            if y > r * current_y:
                if accepted > burn_in:
                    points.append(x)
                    steps.append(x - current)
                accepted += 1
                current, current_y = x, y
                if accepted >= total:
                    break
    return np.array(points), np.array(steps)


def _plot(histograms: dict[str, Histogram], output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(2, 2, figsize=(16, 9))
    layout = {
        "x_random": axes[0, 0],
        "δx_random": axes[1, 0],
        "x_mcmc": axes[0, 1],
        "δx_mcmc": axes[1, 1],
    }
    for label, ax in layout.items():
        histogram = histograms[label]
        ax.stairs(histogram.contents, histogram.bin_edges(), color="black")
        ax.set_xlabel(f"{label} [bananas]")
        ax.set_ylabel("Entries")
    fig.tight_layout()
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare successive-point differences of independent and MCMC samples."
    )
    parser.add_argument("--samples", type=int, default=100_001)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="RandomNumberCorrelation.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    rng = np.random.default_rng(args.seed)
    mean, sigma = 3.0, 2.0
    proposal_sigma = 0.3
    nbins = 1000

    values, diffs = independent_differences(mean, sigma, args.samples - 1, rng)
    points, steps = metropolis_hastings(
        lambda x: gaussian(x, mean, sigma), None, proposal_sigma, args.samples, 1000, rng
    )

    histograms = {
        "x_random": Histogram(nbins, mean - 7 * sigma, mean + 7 * sigma),
        "δx_random": Histogram(nbins, mean - 14 * sigma, mean + 14 * sigma),
        "x_mcmc": Histogram(nbins, mean - 7 * sigma, mean + 7 * sigma),
        "δx_mcmc": Histogram(nbins, -7 * proposal_sigma, 7 * proposal_sigma),
    }
    histograms["x_random"].fill(values)
    histograms["δx_random"].fill(diffs)
    histograms["x_mcmc"].fill(points)
    histograms["δx_mcmc"].fill(steps)

    for label, data in (("random", diffs), ("mcmc", steps)):
        print(f"{label}: std of successive differences = {float(np.std(data)):g}")

    if not args.no_plot:
        _plot(histograms, args.output, args.show)
    return 0
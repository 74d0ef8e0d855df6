"""Fixed-width one- and two-dimensional histograms, and the Poisson rate posterior."""

from __future__ import annotations

import argparse
import math

import numpy as np

from toystats.distributions import smart_poisson

__all__ = ["Histogram", "Histogram2D", "posterior_for_rate", "main"]


class Histogram:
    """Histogram with equal-width bins over [low, high), bins indexed from 0."""

    def __init__(self, nbins, low, high):
        if int(nbins) < 1:
            raise ValueError("a histogram needs at least one bin")
        if not high > low:
            raise ValueError("upper edge must be above lower edge")
        self.nbins = int(nbins)
        self.low = float(low)
        self.high = float(high)
        self.width = (self.high - self.low) / self.nbins
        self.contents = np.zeros(self.nbins)
        self.underflow = 0.0
        self.overflow = 0.0
        self.entries = 0

    @property
    def centers(self) -> np.ndarray:
        """Centres of all bins."""
        return self.low + (np.arange(self.nbins) + 0.5) * self.width

    def find_bin(self, x) -> int:
        """Return the bin index of x: -1 below the range, nbins at or above it."""
        if x < self.low:
            return -1
        if not x < self.high:
            return self.nbins
        return min(int((x - self.low) / self.width), self.nbins - 1)

    def fill(self, x, weight=1.0) -> None:
        """Add one or many values, each with the given weight."""
        values = np.atleast_1d(np.asarray(x, dtype=float))
        weights = np.broadcast_to(np.asarray(weight, dtype=float), values.shape)
        under = values < self.low
        inside = (values >= self.low) & (values < self.high)
        over = ~(under | inside)
        indices = np.minimum(
            ((values[inside] - self.low) / self.width).astype(int), self.nbins - 1
        )
        np.add.at(self.contents, indices, weights[inside])
        self.underflow += float(weights[under].sum())
        self.overflow += float(weights[over].sum())
        self.entries += values.size

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.nbins:
            raise IndexError(f"bin {index} outside 0..{self.nbins - 1}")

    def bin_center(self, index) -> float:
        self._check_index(index)
        return self.low + (index + 0.5) * self.width

    def bin_edges(self) -> np.ndarray:
        return self.low + np.arange(self.nbins + 1) * self.width

    def set_content(self, index, value) -> None:
        self._check_index(index)
        self.contents[index] = value

    def reset(self) -> None:
        self.contents[:] = 0.0
        self.underflow = 0.0
        self.overflow = 0.0
        self.entries = 0

    def integral(self) -> float:
        """Sum of the in-range bin contents."""
        return float(self.contents.sum())

    def mean(self) -> float:
        """Content-weighted mean of bin centres; 0 for an empty histogram."""
        total = self.contents.sum()
        if total == 0:
            return 0.0
        return float(np.dot(self.contents, self.centers) / total)

    def std_dev(self) -> float:
        """Content-weighted standard deviation of bin centres."""
        total = self.contents.sum()
        if total == 0:
            return 0.0
        mean = np.dot(self.contents, self.centers) / total
        variance = np.dot(self.contents, (self.centers - mean) ** 2) / total
        return float(math.sqrt(max(variance, 0.0)))

    def maximum(self) -> float:
        return float(self.contents.max())

    def normalized(self) -> "Histogram":
        """Return a copy scaled so that its integral is one."""
        total = self.integral()
        if total == 0:
            raise ValueError("cannot normalise an empty histogram")
        copy = Histogram(self.nbins, self.low, self.high)
        copy.contents = self.contents / total
        copy.underflow = self.underflow / total
        copy.overflow = self.overflow / total
        copy.entries = self.entries
        return copy


class Histogram2D:
    """Two-dimensional histogram with equal-width bins along each axis."""

    def __init__(self, nx, xlow, xhigh, ny, ylow, yhigh):
        if int(nx) < 1 or int(ny) < 1:
            raise ValueError("a histogram needs at least one bin per axis")
        if not (xhigh > xlow and yhigh > ylow):
            raise ValueError("upper edges must be above lower edges")
        self.nx, self.ny = int(nx), int(ny)
        self.xlow, self.xhigh = float(xlow), float(xhigh)
        self.ylow, self.yhigh = float(ylow), float(yhigh)
        self.contents = np.zeros((self.nx, self.ny))
        self.outside = 0
        self.entries = 0

    def fill(self, x, y) -> None:
        """Add one or many (x, y) pairs; pairs outside the range are only counted."""
        xs, ys = np.broadcast_arrays(
            np.atleast_1d(np.asarray(x, dtype=float)),
            np.atleast_1d(np.asarray(y, dtype=float)),
        )
        inside = (
            (xs >= self.xlow) & (xs < self.xhigh) & (ys >= self.ylow) & (ys < self.yhigh)
        )
        ix = np.minimum(
            ((xs[inside] - self.xlow) / (self.xhigh - self.xlow) * self.nx).astype(int),
            self.nx - 1,
        )
        iy = np.minimum(
            ((ys[inside] - self.ylow) / (self.yhigh - self.ylow) * self.ny).astype(int),
            self.ny - 1,
        )
        np.add.at(self.contents, (ix, iy), 1.0)
        self.outside += int((~inside).sum())
        self.entries += xs.size


def posterior_for_rate(n, lam_max, nbins) -> Histogram:
    """Posterior of the Poisson rate for n observed counts under a flat prior on [0, lam_max]."""
    posterior = Histogram(nbins, 0.0, lam_max)
    for index, center in enumerate(posterior.centers):
        posterior.set_content(index, smart_poisson(n, center))
    return posterior


def _plot(prior: Histogram, posterior: Histogram, output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(16, 9))
    ax.stairs(prior.contents, prior.bin_edges(), color="black")
    ax.set_xlabel("n")
    ax.set_ylabel("P(n|λ=5)")
    ax.set_ylim(0.0, 0.2)
    twin = ax.twinx()
    twin.stairs(posterior.contents, posterior.bin_edges(), color="red")
    twin.set_ylim(0.0, 0.2)
    twin.set_ylabel("P(λ|n=5)", color="red")
    twin.tick_params(axis="y", colors="red")
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare the Poisson distribution with the posterior of its rate."
    )
    parser.add_argument("--output", default="PoissonPosteriorForRate.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    lam = 5.0
    prior = Histogram(26, -0.5, 25.5)
    for index, center in enumerate(prior.centers):
        prior.set_content(index, smart_poisson(center, lam))

    posterior = posterior_for_rate(5, 25.0, 10000)
    print(f"Posterior mean: {posterior.mean():g}")
    print(f"Posterior variance:  {posterior.std_dev() ** 2:g}")

    if not args.no_plot:
        _plot(prior, posterior, args.output, args.show)
    return 0
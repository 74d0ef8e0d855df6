"""Timing of unbinned extended-likelihood fits against binned Poisson fits."""

from __future__ import annotations

import argparse
import math
import time
from enum import Enum
from typing import NamedTuple

import numpy as np
from scipy.special import erf

from toystats.model import Model

__all__ = ["LikelihoodType", "BinnedVsUnbinned", "time_ratio", "main"]

E_MIN = 2000.0  # keV
E_MAX = 2080.0  # keV
N_BINS = 80
MU = 2039.0  # keV
SIGMA = 1.5  # keV
N_ERR = 7.0
SIGNALS = (5, 20, 50, 100)
BACKGROUNDS = (10, 30, 100, 200)


class LikelihoodType(Enum):
    BINNED = "binned"
    UNBINNED = "unbinned"


class BinnedVsUnbinned(Model):
    """Gaussian signal over flat background, fitted binned or unbinned."""

    def __init__(self, rng=None):
        super().__init__("BinnedVsUnbinned")
        self.rng = np.random.default_rng() if rng is None else rng
        self.likelihood_type = LikelihoodType.UNBINNED
        self.e_min = E_MIN
        self.e_max = E_MAX
        self.delta_e = self.e_max - self.e_min
        self.nbins = N_BINS
        self.de = self.delta_e / self.nbins
        self.mu = MU
        self.sigma = SIGMA
        self.counts = np.zeros(self.nbins)

        edges = self.e_min + self.de * np.arange(self.nbins + 1)
        cdf = 0.5 * erf((edges - self.mu) / math.sqrt(2.0) / self.sigma)
        self.gaussian_bin_cdf = np.diff(cdf)
        self.bkg_pdf = 1.0 / self.delta_e
        self.bkg_bin_cdf = self.de / self.delta_e

        self.signal = 0
        self.background = 0
        self.events: np.ndarray | None = None
        self.gaussian_pdf = np.zeros(0)

    @property
    def n(self) -> int:
        return self.signal + self.background

    def reset_data(self) -> None:
        """Zero the bin counts and the per-event signal densities."""
        self.counts[:] = 0.0
        self.gaussian_pdf[:] = 0.0

    def set_data(self, s, b) -> None:
        """Generate s signal and b background events and set the fit ranges from them."""
        s, b = int(s), int(b)
        if s < 0 or b < 0:
            raise ValueError("event counts must not be negative")
        if s + b == 0:
            raise ValueError("need at least one event")
        self.reset_data()
        self.signal, self.background = s, b
        self.events = np.concatenate(
            (
                self.rng.normal(self.mu, self.sigma, s),
                self.rng.uniform(self.e_min, self.e_max, b),
            )
        )
        indices = ((self.events - self.e_min) / self.de).astype(int)
        indices = indices[(indices >= 0) & (indices < self.nbins)]
        self.counts += np.bincount(indices, minlength=self.nbins)
        self.gaussian_pdf = (
            np.exp(-(((self.events - self.mu) / self.sigma) ** 2) / 2.0)
            / math.sqrt(2.0 * math.pi)
            / self.sigma
        )

        err = math.sqrt(s + b)
        self.parameters = []
        self.reset_results()
        self.add_parameter("S", max(0.0, s - N_ERR * err), s + N_ERR * err)
        self.add_parameter("B", max(0.0, b - N_ERR * err), b + N_ERR * err)

    def log_likelihood(self, pars) -> float:
        """Extended unbinned or binned Poisson log-likelihood, constants dropped."""
        if self.events is None:
            raise RuntimeError("no data has been set")
        s, b = (float(v) for v in pars)
        with np.errstate(divide="ignore", invalid="ignore"):
            if self.likelihood_type is LikelihoodType.UNBINNED:
                return float(-(s + b) + np.log(s * self.gaussian_pdf + b * self.bkg_pdf).sum())
            lam = s * self.gaussian_bin_cdf + b * self.bkg_bin_cdf
            return float(np.sum(-lam + self.counts * np.log(lam)))


class _TimingResult(NamedTuple):
    events_per_bin: float
    ratio: float
    error: float


def time_ratio(s, b, n_toys=1000, rng=None) -> _TimingResult:
    """Average ratio of unbinned to binned fit time over n_toys data sets."""
    if int(n_toys) < 1:
        raise ValueError("n_toys must be positive")
    rng = np.random.default_rng() if rng is None else rng
    ratios = np.empty(int(n_toys))
    nbins = N_BINS
    for index in range(int(n_toys)):
        model = BinnedVsUnbinned(rng)
        model.set_data(s, b)
        nbins = model.nbins

        start = time.perf_counter()
        model.likelihood_type = LikelihoodType.UNBINNED
        model.find_mode()
        unbinned = time.perf_counter() - start

        start = time.perf_counter()
        model.reset_results()
        model.likelihood_type = LikelihoodType.BINNED
        model.find_mode()
        binned = time.perf_counter() - start

        ratios[index] = unbinned / binned
    average = float(ratios.mean())
    error = math.sqrt(float(np.sum((ratios - average) ** 2)) / ratios.size)
    return _TimingResult((int(s) + int(b)) / nbins, average, error)


def _plot(results: list[_TimingResult], output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(16, 9))
    ax.errorbar(
        [r.events_per_bin for r in results],
        [r.ratio for r in results],
        yerr=[r.error for r in results],
        fmt="o",
        color="black",
    )
    ax.set_xlabel("N_events / N_bins")
    ax.set_ylabel("t_unbinned / t_binned")
    ax.set_ylim(0.0, 3.0)
    ax.grid(True)
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare the time taken by unbinned and binned likelihood fits."
    )
    parser.add_argument("--toys", type=int, default=1000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="BinnedVsUnbinned.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    rng = np.random.default_rng(args.seed)
    results = []
    for s in SIGNALS:
        for b in BACKGROUNDS:
            result = time_ratio(s, b, args.toys, rng)
            results.append(result)
            print(
                f"S={s} B={b}: N/bins = {result.events_per_bin:g}, "
                f"ratio = {result.ratio:g} +- {result.error:g}"
            )

    if not args.no_plot:
        _plot(results, args.output, args.show)
    return 0
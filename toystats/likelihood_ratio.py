"""Goodness of fit through the Baker-Cousins likelihood ratio of a binned spectrum."""

from __future__ import annotations

import argparse
import math
from typing import NamedTuple

import numpy as np

from toystats.histogram import Histogram
from toystats.model import Model
from toystats.scatter import theoretical_chi2

__all__ = ["LikelihoodRatio", "run_toys", "main"]

E_MIN = 2030.0  # keV
E_MAX = 2050.0  # keV
N_BINS = 40
SIGNAL = 1000
BACKGROUND = 1000
MU = 2039.0  # keV, Q-value of 76Ge
SIGMA = 1.5  # keV
N_ERR = 7.0


class LikelihoodRatio(Model):
    """Gaussian peak over a flat background, fitted with 2 log(L / L_max).

    The saturated likelihood is approximated by setting each bin's expectation
    to its observed count, so every bin must hold at least one count.
    """

    def __init__(self, rng=None):
        super().__init__("LikelihoodRatio")
        self.rng = np.random.default_rng() if rng is None else rng
        self.e_min = E_MIN
        self.e_max = E_MAX
        self.delta_e = self.e_max - self.e_min
        self.nbins = N_BINS
        self.de = self.delta_e / self.nbins
        self.signal = SIGNAL
        self.background = BACKGROUND
        self.mu = MU
        self.sigma = SIGMA
        self.counts = np.zeros(self.nbins)

        centers = self.e_min + self.de * (0.5 + np.arange(self.nbins))
        self.gaussian_pdf = (
            np.exp(-0.5 * ((centers - self.mu) / self.sigma) ** 2)
            * self.de
            / math.sqrt(2.0 * math.pi)
            / self.sigma
        )

        err = math.sqrt(self.signal + self.background)
        self.add_parameter(
            "S", max(0.0, self.signal - N_ERR * err), self.signal + N_ERR * err
        )
        self.add_parameter(
            "B", max(0.0, self.background - N_ERR * err), self.background + N_ERR * err
        )

    def reset_data(self) -> None:
        """Set every bin count to zero."""
        self.counts[:] = 0.0

    def set_data(self) -> None:
        """Fill the spectrum with a fresh set of signal and background events."""
        self.reset_data()
        energies = np.concatenate(
            (
                self.rng.normal(self.mu, self.sigma, self.signal),
                self.rng.uniform(self.e_min, self.e_max, self.background),
            )
        )
        indices = ((energies - self.e_min) / self.de).astype(int)
        indices = indices[(indices >= 0) & (indices < self.nbins)]
        self.counts += np.bincount(indices, minlength=self.nbins)

    def log_likelihood(self, pars) -> float:
        """Return 2 log(L / L_max); nan if any bin is empty."""
        s, b = (float(v) for v in pars)
        lam = b * self.de / self.delta_e + s * self.gaussian_pdf
        k = self.counts
        with np.errstate(divide="ignore", invalid="ignore"):
            terms = k - lam - k * np.log(k / lam)
        return float(2.0 * terms.sum())

    def ndf(self) -> int:
        """Degrees of freedom: bins minus the two fitted parameters."""
        return self.nbins - 2

    @property
    def data_histogram(self) -> Histogram:
        histogram = Histogram(self.nbins, self.e_min, self.e_max)
        histogram.contents = self.counts.copy()
        histogram.entries = int(self.counts.sum())
        return histogram

    def fitting_function(self, x):
        """Expected counts per bin at energy x for the best-fit parameters."""
        s, b = self.best_fit_parameters
        xs = np.asarray(x, dtype=float)
        result = b * self.de / self.delta_e + self.de * s / math.sqrt(
            2.0 * math.pi
        ) / self.sigma * np.exp(-0.5 * ((xs - self.mu) / self.sigma) ** 2)
        return float(result) if result.ndim == 0 else result


class _ToyResults(NamedTuple):
    chi2: np.ndarray
    ndf: int
    first: LikelihoodRatio


def run_toys(n_toys=100_000, rng=None) -> _ToyResults:
    """Fit n_toys fresh spectra and return the minimum chi-square of each."""
    if int(n_toys) < 1:
        raise ValueError("n_toys must be positive")
    rng = np.random.default_rng() if rng is None else rng
    chi2 = np.empty(int(n_toys))
    first = None
    for index in range(int(n_toys)):
        model = LikelihoodRatio(rng)
        model.set_data()
        best = model.find_mode()
        chi2[index] = -model.log_likelihood(best)
        if first is None:
            first = model
    return _ToyResults(chi2, first.ndf(), first)


def _plot(results: _ToyResults, chi2_histogram: Histogram, theory: Histogram,
          output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (top, bottom) = plt.subplots(2, 1, figsize=(16, 9))
    data = results.first.data_histogram
    top.stairs(data.contents, data.bin_edges(), color="black")
    energies = np.linspace(data.low, data.high, 1000)
    top.plot(energies, results.first.fitting_function(energies), color="red")
    top.set_xlabel("Energy [keV]")
    top.set_ylabel("Counts")
    top.set_ylim(0.0, 1.1 * data.maximum())
    bottom.stairs(chi2_histogram.contents, chi2_histogram.bin_edges(), color="black")
    bottom.stairs(theory.contents, theory.bin_edges(), color="red", linewidth=2)
    bottom.set_xlabel("χ²")
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare likelihood-ratio goodness-of-fit values with the chi-square law."
    )
    parser.add_argument("--toys", type=int, default=100_000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="LikelihoodRatio.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    results = run_toys(args.toys, np.random.default_rng(args.seed))
    nbins, max_chi2 = 1000, 100.0
    chi2_histogram = Histogram(nbins, 0.0, max_chi2)
    chi2_histogram.fill(results.chi2)
    theory = theoretical_chi2(Histogram(nbins, 0.0, max_chi2), args.toys, results.ndf)

    print(f"ndf = {results.ndf}")
    print(f"mean chi2 = {float(np.mean(results.chi2)):g}")

    if not args.no_plot:
        _plot(results, chi2_histogram, theory, args.output, args.show)
    return 0
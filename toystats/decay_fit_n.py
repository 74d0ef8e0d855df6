"""Fit of the initial number of nuclei from the decay times seen in a fixed window."""

from __future__ import annotations

import argparse
import logging
import math
from enum import Enum

import numpy as np

from toystats.histogram import Histogram
from toystats.model import Model

__all__ = [
    "FitMethod",
    "RadioactiveDecayFit",
    "log_binomial",
    "log_poisson",
    "normalize",
    "main",
]

_LOG = logging.getLogger(__name__)

N_NUCLEI = 1000
HALFLIFE = 138.376  # days, 210Po
N_TIME_BINS = 100
POSTERIOR_BINS = 300


class FitMethod(Enum):
    BINOMIAL = "Binomial"
    POISSON = "Poisson"


def _safe_log(x: float) -> float:
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.log(x))


def _log_range(start: float, stop: float) -> float:
    """Sum of log(i) for i = start, start + 1, ... while i <= stop; start is integral."""
    if start > stop:
        return 0.0
    last = math.floor(stop)
    if start >= 1:
        return math.lgamma(last + 1.0) - math.lgamma(start)
    values = np.arange(start, last + 1.0, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.log(values).sum())


def log_binomial(k, n, p) -> float:
    """Log of the binomial probability without the k-only log(k!) term.

    The term depending on k alone is constant in a fit of n and is dropped.
    """
    sum_1 = _log_range(float(int(n - k + 1)), n)
    return sum_1 + k * _safe_log(p) + (n - k) * _safe_log(1.0 - p)


def log_poisson(n, lam):
    """Log of the Poisson probability without the log(n!) term."""
    n_arr = np.asarray(n, dtype=float)
    lam_arr = np.asarray(lam, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = -lam_arr + n_arr * np.log(lam_arr)
    return float(result) if result.ndim == 0 else result


def normalize(histogram: Histogram) -> Histogram:
    """Scale histogram in place so that its bin contents sum to one; return it."""
    total = histogram.integral()
    if total == 0:
        raise ValueError("cannot normalise an empty histogram")
    histogram.contents = histogram.contents / total
    histogram.underflow /= total
    histogram.overflow /= total
    return histogram


def _grid_posterior(log_likelihood, low: float, high: float, nbins: int) -> Histogram:
    """Flat-prior posterior of a single parameter, evaluated at bin centres."""
    posterior = Histogram(nbins, low, high)
    values = np.array([log_likelihood([float(c)]) for c in posterior.centers])
    values = np.where(np.isnan(values), -np.inf, values)
    peak = values.max()
    if not np.isfinite(peak):
        raise ValueError("the likelihood vanishes over the whole range")
    posterior.contents = np.exp(values - peak)
    return normalize(posterior)


class RadioactiveDecayFit(Model):
    """Unbinned extended likelihood of the decays of N nuclei seen within three half-lives."""

    def __init__(self, rng=None):
        super().__init__("RadioactiveDecayFit")
        self.rng = np.random.default_rng() if rng is None else rng
        self.method = FitMethod.BINOMIAL
        self.n_nuclei = N_NUCLEI
        self.halflife = HALFLIFE
        self.decay_rate = math.log(2.0) / self.halflife
        self.delta_t = 3.0 * self.halflife

        times = self.rng.exponential(1.0 / self.decay_rate, self.n_nuclei)
        self.times = times[times < self.delta_t]
        self.n_detected = int(self.times.size)
        _LOG.info("Number of detected events: %d", self.n_detected)

        self.p = -math.expm1(-self.decay_rate * self.delta_t)
        self.lam = self.n_nuclei * self.p

        self.data = Histogram(N_TIME_BINS, 0.0, self.delta_t)
        self.data.fill(self.times)

        spread = 7.0 * math.sqrt(self.n_nuclei)
        self.n_min = float(max(self.n_detected, int(self.n_nuclei - spread)))
        self.n_max = self.n_nuclei + spread
        self.add_parameter("N", self.n_min, self.n_max)

        self._event_terms = self.n_detected * math.log(self.decay_rate) - (
            self.decay_rate * float(self.times.sum())
        )

    def log_likelihood(self, pars) -> float:
        """Binomial or Poisson count term plus the (constant) single-event terms."""
        n = float(pars[0])
        if self.method is FitMethod.BINOMIAL:
            log_l = log_binomial(self.n_detected, n, self.p)
        else:
            log_l = log_poisson(self.n_detected, n * self.p)
        return log_l + self._event_terms

    def best_fit_curve(self, t):
        """Expected events per time bin at t for the best-fit N."""
        best = self.best_fit_parameters
        if best is None or len(best) == 0:
            raise RuntimeError("no fit has been run")
        ts = np.asarray(t, dtype=float)
        result = (
            float(best[0]) * self.data.width * self.decay_rate
            * np.exp(-self.decay_rate * ts)
        )
        return float(result) if result.ndim == 0 else result


def _plot(model, posteriors, curves, output, show) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (left, right) = plt.subplots(1, 2, figsize=(16, 9))
    colors = {FitMethod.BINOMIAL: "black", FitMethod.POISSON: "red"}
    for method, posterior in posteriors.items():
        left.stairs(posterior.contents, posterior.bin_edges(),
                    color=colors[method], label=method.value)
    left.set_xlabel("N")
    left.legend()
    right.stairs(model.data.contents, model.data.bin_edges(), color="black")
    t = np.linspace(model.data.low, model.data.high, 500)
    for method, values in curves.items():
        right.plot(t, values, color=colors[method],
                   linestyle="--" if method is FitMethod.POISSON else "-")
    right.set_xlabel("t [days]")
    right.set_ylabel("Events")
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Fit the initial number of nuclei with binomial and Poisson likelihoods."
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="RadioactiveDecayFit.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    model = RadioactiveDecayFit(np.random.default_rng(args.seed))
    print(f"Number of detected events: {model.n_detected}")
    t = np.linspace(model.data.low, model.data.high, 500)
    posteriors = {}
    curves = {}
    for method in FitMethod:
        model.method = method
        model.reset_results()
        posterior = _grid_posterior(
            model.log_likelihood, model.n_min, model.n_max, POSTERIOR_BINS
        )
        start = float(posterior.centers[int(np.argmax(posterior.contents))])
        best = model.find_mode([start])
        posteriors[method] = posterior
        curves[method] = model.best_fit_curve(t)
        print(
            f"{method.value}: N = {float(best[0]):g}, "
            f"posterior mean = {posterior.mean():g} +- {posterior.std_dev():g}"
        )

    if not args.no_plot:
        _plot(model, posteriors, curves, args.output, args.show)
    return 0
"""Joint fit of the initial number of nuclei and the half-life from binned decay times."""

from __future__ import annotations

import argparse
import logging
import math
from enum import Enum
from typing import NamedTuple

import numpy as np
from scipy.optimize import minimize

from toystats.decay_fit_n import (
    _grid_posterior,
    _log_range,
    _safe_log,
    log_poisson,
)
from toystats.distributions import log_factorial
from toystats.histogram import Histogram
from toystats.model import Model

__all__ = ["FitMethod", "RadioactiveDecayHalflifeFit", "log_binomial", "main"]

_LOG = logging.getLogger(__name__)

N_NUCLEI = 1000
HALFLIFE = 138.376  # days, 210Po
N_TIME_BINS = 100
POSTERIOR_BINS = 300


class FitMethod(Enum):
    BINOMIAL = "Binomial"
    MULTINOMIAL = "Multinomial"
    POISSON = "Poisson"


class _Observables(NamedTuple):
    rate: float
    halflife: float


def log_binomial(k, n, p) -> float:
    """Full log of the binomial probability of k successes in n trials."""
    sum_1 = _log_range(float(int(n - k + 1)), n)
    sum_2 = _log_range(1.0, k)
    return sum_1 - sum_2 + k * _safe_log(p) + (n - k) * _safe_log(1.0 - p)


class RadioactiveDecayHalflifeFit(Model):
    """Binned likelihood in N; the decay rate follows from N and the detected count."""

    def __init__(self, rng=None):
        super().__init__("RadioactiveDecayFit")
        self.rng = np.random.default_rng() if rng is None else rng
        self.method = FitMethod.BINOMIAL
        self.n_nuclei = N_NUCLEI
        self.halflife = HALFLIFE
        self.decay_rate = math.log(2.0) / self.halflife
        self.delta_t = 2.0 * self.halflife

        times = self.rng.exponential(1.0 / self.decay_rate, self.n_nuclei)
        self.times = times[times < self.delta_t]
        self.n_detected = int(self.times.size)
        _LOG.info("Number of detected events: %d", self.n_detected)

        self.p = -math.expm1(-self.decay_rate * self.delta_t)
        self.lam = self.n_nuclei * self.p

        self.data = Histogram(N_TIME_BINS, 0.0, self.delta_t)
        self.data.fill(self.times)
        self._edges = self.data.bin_edges()
        self._log_k_factorials = sum(log_factorial(float(k)) for k in self.data.contents)

        self.n_min = float(self.n_detected)
        self.n_max = self.n_nuclei + 10.0 * math.sqrt(self.n_nuclei)
        self.add_parameter("N", self.n_min, self.n_max)

        self.rate_range = (0.7 * self.decay_rate, 1.3 * self.decay_rate)
        self.halflife_range = (
            math.log(2.0) / self.rate_range[1],
            math.log(2.0) / self.rate_range[0],
        )

    def _fraction(self, n_param: float) -> float:
        if not n_param > 0:
            raise ValueError("N must be positive")
        return self.n_detected / n_param

    def log_likelihood(self, pars) -> float:
        """Binomial, Poisson or multinomial likelihood of the binned decay times.

        Returns -inf where N does not exceed the detected count, since the
        implied decay rate is then infinite.
        """
        n_param = float(pars[0])
        big_p = self._fraction(n_param)
        if big_p >= 1.0:
            return -math.inf
        n = float(int(n_param + 0.5))
        rate = -math.log1p(-big_p) / self.delta_t
        probs = np.exp(-rate * self._edges[:-1]) - np.exp(-rate * self._edges[1:])
        counts = self.data.contents

        if self.method is FitMethod.BINOMIAL:
            return float(
                sum(log_binomial(float(k), n, float(p)) for k, p in zip(counts, probs))
            )
        if self.method is FitMethod.POISSON:
            return float(np.sum(log_poisson(counts, probs * n)))

        log_l = log_factorial(n) - log_factorial(n - self.n_detected)
        log_l += (n - self.n_detected) * _safe_log(1.0 - big_p)
        with np.errstate(divide="ignore", invalid="ignore"):
            log_l += float(np.sum(counts * np.log(probs)))
        return log_l - self._log_k_factorials

    def observables(self, pars) -> _Observables:
        """Decay rate and half-life implied by the parameter N."""
        big_p = self._fraction(float(pars[0]))
        if big_p >= 1.0:
            return _Observables(math.inf, 0.0)
        rate = -math.log1p(-big_p) / self.delta_t
        return _Observables(rate, math.log(2.0) / rate)

    def best_fit_curve(self, t):
        """Expected events per time bin at t for the best-fit N and the true rate."""
        best = self.best_fit_parameters
        if best is None or len(best) == 0:
            raise RuntimeError("no fit has been run")
        ts = np.asarray(t, dtype=float)
        result = (
            float(best[0]) * self.data.width * self.decay_rate
            * np.exp(-self.decay_rate * ts)
        )
        return float(result) if result.ndim == 0 else result


def _fit_decay_curve(histogram: Histogram) -> tuple[float, float]:
    """Binned Poisson fit of a * w * ln2 / h * exp(-ln2 t / h); returns (a, h)."""
    width = histogram.width
    centers = histogram.centers
    counts = histogram.contents
    ln2 = math.log(2.0)

    def nll(pars):
        a, h = pars
        if a <= 0 or h <= 0:
            return math.inf
        f = a * width * ln2 / h * np.exp(-ln2 * centers / h)
        if np.any(f <= 0):
            return math.inf
        return float(np.sum(f - counts * np.log(f)))

    result = minimize(nll, np.array([1000.0 * width, HALFLIFE]), method="Nelder-Mead",
                      options={"xatol": 1e-6, "fatol": 1e-9, "maxiter": 5000})
    return float(result.x[0]), float(result.x[1])


_COLORS = {FitMethod.BINOMIAL: "black", FitMethod.MULTINOMIAL: "blue", FitMethod.POISSON: "red"}


def _plot(model, posteriors, curves, decay_fit, output, show) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (left, right) = plt.subplots(1, 2, figsize=(16, 9))
    for method, posterior in posteriors.items():
        left.stairs(posterior.contents, posterior.bin_edges(),
                    color=_COLORS[method], label=method.value)
    left.set_xlabel("N")
    left.legend()
    right.stairs(model.data.contents, model.data.bin_edges(), color="black")
    t = np.linspace(model.data.low, model.data.high, 500)
    for method, values in curves.items():
        right.plot(t, values, color=_COLORS[method],
                   linestyle="--" if method is FitMethod.POISSON else "-")
    a, h = decay_fit
    right.plot(t, a * model.data.width * math.log(2.0) / h * np.exp(-math.log(2.0) * t / h),
               color="green")
    right.set_xlabel("t [days]")
    right.set_ylabel("Events")
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Fit the initial number of nuclei and the half-life from decay times."
    )
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default="RadioactiveDecayHalflifeFit.png")
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    model = RadioactiveDecayHalflifeFit(np.random.default_rng(args.seed))
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
        observed = model.observables(best)
        posteriors[method] = posterior
        curves[method] = model.best_fit_curve(t)
        print(
            f"{method.value}: N = {float(best[0]):g}, R = {observed.rate:g} 1/d, "
            f"T1/2 = {observed.halflife:g} d, "
            f"posterior mean = {posterior.mean():g} +- {posterior.std_dev():g}"
        )

    decay_fit = _fit_decay_curve(model.data)
    print(f"Curve fit: N = {decay_fit[0]:g}, T1/2 = {decay_fit[1]:g} d")

    if not args.no_plot:
        _plot(model, posteriors, curves, decay_fit, args.output, args.show)
    return 0
"""Likelihood, Neyman and Pearson chi-square fits of a peak over a flat background."""

from __future__ import annotations

import argparse
import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import numpy as np
from scipy.optimize import minimize

from toystats.histogram import Histogram, Histogram2D

__all__ = [
    "FitMethod",
    "SpectrumFit",
    "gaussian_plus_flat",
    "fill_spectrum",
    "fit_spectrum",
    "run_case",
    "main",
]

MU = 2039.0  # keV, Q-value of 76Ge
SIGMA = 1.5  # keV, detector resolution
E_MIN = 2000.0
E_MAX = 2080.0
N_BINS = int(10 * (E_MAX - E_MIN))
COUNTS = (10, 100, 1000, 10000)
N_ERR = 7.0


class FitMethod(Enum):
    LIKELIHOOD = "Likelihood"
    NEYMAN_CHI2 = "NeymanChi2"
    PEARSON_CHI2 = "PearsonChi2"


@dataclass(frozen=True)
class SpectrumFit:
    """Fitted signal and background counts and the minimised objective."""

    signal: float
    background: float
    method: FitMethod
    objective: float


def gaussian_plus_flat(x, params):
    """Expected bin content: params are integral, mean, sigma, background, bin width, range."""
    integral, mean, sigma, background, width, span = (float(p) for p in params)
    xs = np.asarray(x, dtype=float)
    result = (
        integral * width / math.sqrt(2.0 * math.pi) / sigma
        * np.exp(-((xs - mean) ** 2) / 2.0 / sigma**2)
        + background / span * width
    )
    return float(result) if result.ndim == 0 else result


def fill_spectrum(histogram, s, b, rng=None, mu=MU, sigma=SIGMA) -> Histogram:
    """Reset histogram and fill it with b flat and s Gaussian events."""
    if s < 0 or b < 0:
        raise ValueError("event counts must not be negative")
    rng = np.random.default_rng() if rng is None else rng
    histogram.reset()
    histogram.fill(rng.uniform(histogram.low, histogram.high, int(b)))
    histogram.fill(rng.normal(mu, sigma, int(s)))
    return histogram


def _objective(method: FitMethod, counts: np.ndarray, expected):
    positive = counts > 0

    def likelihood(pars):
        f = expected(pars)
        if np.any(f[positive] <= 0) or np.any(f < 0):
            return math.inf
        k = counts[positive]
        return float(2.0 * (f.sum() - k.sum() + np.dot(k, np.log(k / f[positive]))))

    def neyman(pars):
        f = expected(pars)
        k = counts[positive]
        return float(np.sum((k - f[positive]) ** 2 / k))

    def pearson(pars):
        f = expected(pars)
        if np.any(f <= 0):
            return math.inf
        return float(np.sum((counts - f) ** 2 / f))

    return {
        FitMethod.LIKELIHOOD: likelihood,
        FitMethod.NEYMAN_CHI2: neyman,
        FitMethod.PEARSON_CHI2: pearson,
    }[method]


def fit_spectrum(histogram, method, start, bounds, mu=MU, sigma=SIGMA) -> SpectrumFit:
    """Fit signal and background counts, with peak position and width held fixed.

    The model is evaluated at bin centres; bounds are ((s_low, s_high), (b_low, b_high)).
    """
    method = FitMethod(method)
    (s_low, s_high), (b_low, b_high) = bounds
    if not (s_high > s_low and b_high > b_low):
        raise ValueError("upper bounds must be above lower bounds")
    counts = histogram.contents
    span = histogram.high - histogram.low
    shape = gaussian_plus_flat(
        histogram.centers, (1.0, mu, sigma, 0.0, histogram.width, span)
    )
    flat = histogram.width / span

    def expected(pars):
        return pars[0] * shape + pars[1] * flat

    lows = np.array([s_low, b_low], dtype=float)
    highs = np.array([s_high, b_high], dtype=float)
    x0 = np.clip(np.asarray(start, dtype=float), lows, highs)
    objective = _objective(method, counts, expected)
    result = minimize(
        objective,
        x0,
        method="Nelder-Mead",
        bounds=list(zip(lows, highs)),
        options={
            "xatol": 1e-6 * float((highs - lows).max()),
            "fatol": 1e-8,
            "maxiter": 4000,
            "maxfev": 8000,
        },
    )
    signal, background = (float(v) for v in result.x)
    return SpectrumFit(signal, background, method, float(result.fun))


class _CaseResult(NamedTuple):
    s: int
    b: int
    signal: dict[FitMethod, Histogram]
    background: dict[FitMethod, Histogram]
    joint: dict[FitMethod, Histogram2D]


def run_case(s, b, n_toys=300, rng=None) -> _CaseResult:
    """Generate n_toys spectra and fit each with the three methods in turn.

    Each fit starts from the previous method's result; the first starts at a
    random point inside the allowed ranges.
    """
    if n_toys < 1:
        raise ValueError("n_toys must be positive")
    rng = np.random.default_rng() if rng is None else rng
    err = math.sqrt(s + b)
    mins, maxs = max(0.0, s - N_ERR * err), s + N_ERR * err
    minb, maxb = max(0.0, b - N_ERR * err), b + N_ERR * err
    bounds = ((mins, maxs), (minb, maxb))
    nbins = 1000
    signal = {m: Histogram(nbins, mins, maxs) for m in FitMethod}
    background = {m: Histogram(nbins, minb, maxb) for m in FitMethod}
    joint = {m: Histogram2D(nbins, mins, maxs, nbins, minb, maxb) for m in FitMethod}

    spectrum = Histogram(N_BINS, E_MIN, E_MAX)
    for _ in range(int(n_toys)):
        fill_spectrum(spectrum, s, b, rng)
        start = (
            mins + (maxs - mins) * rng.random(),
            minb + (maxb - minb) * rng.random(),
        )
        for method in FitMethod:
            fit = fit_spectrum(spectrum, method, start, bounds)
            signal[method].fill(fit.signal)
            background[method].fill(fit.background)
            joint[method].fill(fit.signal, fit.background)
            start = (fit.signal, fit.background)
    return _CaseResult(int(s), int(b), signal, background, joint)


_COLORS = {
    FitMethod.LIKELIHOOD: "black",
    FitMethod.NEYMAN_CHI2: "red",
    FitMethod.PEARSON_CHI2: "blue",
}


def _plot(results: list[_CaseResult], prefix: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    n = len(COUNTS)
    figures = []
    for attribute in ("signal", "background"):
        fig, axes = plt.subplots(n, n, figsize=(16, 9), squeeze=False)
        for ax, result in zip(axes.flat, results):
            for method, histogram in getattr(result, attribute).items():
                ax.stairs(histogram.contents, histogram.bin_edges(),
                          color=_COLORS[method], label=method.value)
            ax.set_title(f"{attribute[0].upper()} S={result.s} B={result.b}", fontsize=8)
        axes.flat[0].legend(fontsize=7)
        figures.append(fig)
    for method in FitMethod:
        fig, axes = plt.subplots(n, n, figsize=(16, 9), squeeze=False)
        for ax, result in zip(axes.flat, results):
            h = result.joint[method]
            ax.imshow(h.contents.T, origin="lower", aspect="auto",
                      extent=(h.xlow, h.xhigh, h.ylow, h.yhigh))
            ax.set_xlabel("S")
            ax.set_ylabel("B")
            ax.set_title(f"{method.value} S={result.s} B={result.b}", fontsize=8)
        figures.append(fig)
    for number, fig in enumerate(figures, start=1):
        fig.tight_layout()
        fig.savefig(f"{prefix}_{number}.png")
    if show:
        plt.show()
    for fig in figures:
        plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare likelihood and chi-square fits of a peak over background."
    )
    parser.add_argument("--toys", type=int, default=300)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output-prefix", default="LikelihoodVsChi2")
    parser.add_argument("--show", action="store_true", help="open interactive windows")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    rng = np.random.default_rng(args.seed)
    print("s\tb")
    print("-------------")
    results = []
    for b in COUNTS:
        for s in COUNTS:
            print(f"{s}\t{b}")
            results.append(run_case(s, b, args.toys, rng))

    if not args.no_plot:
        _plot(results, args.output_prefix, args.show)
    return 0
"""Straight-line fits of scattered points and the distribution of their minimum chi-square."""

from __future__ import annotations

import argparse
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from toystats.distributions import chi_square_pdf
from toystats.histogram import Histogram

__all__ = [
    "ScatterConfig",
    "LineFit",
    "fit_line",
    "generate_points",
    "simulate_chi2",
    "theoretical_chi2",
    "run_basic",
    "run_overestimated",
    "run_systematic",
    "main",
]


@dataclass(frozen=True)
class ScatterConfig:
    """Points at x_min, x_min + step, ..., x_max around offset + slope * x.

    Each point is smeared by a Gaussian whose sigma is drawn uniformly
    from [min_sigma, max_sigma].
    """

    x_min: float = 0.0
    x_max: float = 1000.0
    step: float = 100.0
    offset: float = 3.0
    slope: float = 1.5
    min_sigma: float = 10.0
    max_sigma: float = 100.0

    def __post_init__(self):
        if not self.step > 0:
            raise ValueError("step must be positive")
        if not self.x_max > self.x_min:
            raise ValueError("x_max must be above x_min")
        if not 0 < self.min_sigma < self.max_sigma:
            raise ValueError("need 0 < min_sigma < max_sigma")

    @property
    def n_points(self) -> int:
        return int((self.x_max - self.x_min) / self.step) + 1

    @property
    def x(self) -> np.ndarray:
        return self.x_min + self.step * np.arange(self.n_points)

    @property
    def ndf(self) -> int:
        """Degrees of freedom of a two-parameter line fit."""
        return self.n_points - 2

    @property
    def max_chi2(self) -> float:
        """Upper edge of the chi-square histograms."""
        return self.n_points + 10.0 * math.sqrt(self.n_points)


@dataclass(frozen=True)
class LineFit:
    """Weighted least-squares fit of offset + slope * x."""

    offset: float
    slope: float
    offset_error: float
    slope_error: float
    chi2: float
    ndf: int

    def __call__(self, x):
        return self.offset + self.slope * np.asarray(x, dtype=float)


def _weighted_line_fits(x, y, sigma):
    """Fit lines along the last axis; return offset, slope, their variances and chi2."""
    w = 1.0 / sigma**2
    s = w.sum(axis=-1)
    sx = (w * x).sum(axis=-1)
    sy = (w * y).sum(axis=-1)
    sxx = (w * x * x).sum(axis=-1)
    sxy = (w * x * y).sum(axis=-1)
    det = s * sxx - sx**2
    slope = (s * sxy - sx * sy) / det
    offset = (sxx * sy - sx * sxy) / det
    residual = y - offset[..., None] - slope[..., None] * x
    chi2 = (w * residual**2).sum(axis=-1)
    return offset, slope, sxx / det, s / det, chi2


def fit_line(x, y, sigma) -> LineFit:
    """Fit a straight line to points with uncertainties sigma on y."""
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    ss = np.asarray(sigma, dtype=float)
    if xs.ndim != 1 or xs.shape != ys.shape or xs.shape != ss.shape:
        raise ValueError("x, y and sigma must be one-dimensional and of equal length")
    if xs.size < 2:
        raise ValueError("a line fit needs at least two points")
    if np.any(ss <= 0):
        raise ValueError("uncertainties must be positive")
    if np.all(xs == xs[0]):
        raise ValueError("x values must not all be equal")
    offset, slope, var_offset, var_slope, chi2 = _weighted_line_fits(
        xs[None, :], ys[None, :], ss[None, :]
    )
    return LineFit(
        float(offset[0]),
        float(slope[0]),
        math.sqrt(float(var_offset[0])),
        math.sqrt(float(var_slope[0])),
        float(chi2[0]),
        xs.size - 2,
    )


def _draw(config: ScatterConfig, rng, n_toys: int, quadratic: float, error_scale: float):
    if not error_scale > 0:
        raise ValueError("error_scale must be positive")
    x = config.x
    shape = (n_toys, config.n_points)
    sigma = rng.uniform(config.min_sigma, config.max_sigma, shape)
    noise = rng.normal(0.0, sigma)
    y = config.offset + config.slope * x + noise + quadratic * x**2
    return x, y, error_scale * sigma


def generate_points(config, rng=None, quadratic=0.0, error_scale=1.0):
    """Generate one toy scatter plot; return x, y and the assigned y uncertainties.

    quadratic adds quadratic * x**2 to each point; error_scale multiplies the
    uncertainty assigned to it, not the smearing actually applied.
    """
    rng = np.random.default_rng() if rng is None else rng
    x, y, yerr = _draw(config, rng, 1, quadratic, error_scale)
    return x.copy(), y[0], yerr[0]


def simulate_chi2(config, n_toys, rng=None, quadratic=0.0, error_scale=1.0) -> np.ndarray:
    """Return the minimum chi-square of a line fit for each of n_toys scatter plots."""
    if n_toys < 1:
        raise ValueError("n_toys must be positive")
    rng = np.random.default_rng() if rng is None else rng
    x, y, yerr = _draw(config, rng, int(n_toys), quadratic, error_scale)
    *_, chi2 = _weighted_line_fits(x[None, :], y, yerr)
    return chi2


def theoretical_chi2(histogram, n_toys, ndf, scale=1.0) -> Histogram:
    """Fill histogram with the expected counts of a chi-square law and return it.

    Each bin holds n_toys * scale * bin width * pdf(bin centre).
    """
    for index, center in enumerate(histogram.centers):
        histogram.set_content(
            index, n_toys * scale * histogram.width * chi_square_pdf(float(center), ndf)
        )
    return histogram


def _accumulate(start: float, stop: float, step: float) -> Iterator[float]:
    value = start
    while value <= stop:
        yield value
        value += step


class _Study(NamedTuple):
    histograms: dict[str, Histogram]
    theory: Histogram
    points: tuple[np.ndarray, np.ndarray, np.ndarray]
    fit: LineFit


def _run(n_toys, rng, cases, nbins: int, label_scale: float) -> _Study:
    config = ScatterConfig()
    rng = np.random.default_rng() if rng is None else rng
    histograms: dict[str, Histogram] = {}
    points = None
    for label, quadratic, error_scale in cases:
        histogram = Histogram(nbins, 0.0, config.max_chi2)
        histogram.fill(simulate_chi2(config, n_toys, rng, quadratic, error_scale))
        histograms[label] = histogram
        points = generate_points(config, rng, quadratic, error_scale)
    theory = theoretical_chi2(
        Histogram(1000, 0.0, config.max_chi2), n_toys, config.ndf, label_scale
    )
    return _Study(histograms, theory, points, fit_line(*points))


def run_basic(n_toys=10000, rng=None) -> _Study:
    """Chi-square distribution of line fits with correct uncertainties."""
    return _run(n_toys, rng, [("chi2", 0.0, 1.0)], 1000, 1.0)


def run_overestimated(n_toys=10000, rng=None) -> _Study:
    """Chi-square distributions when uncertainties are inflated by k = 1.0 ... 1.4."""
    cases = [(f"k={k:f}", 0.0, k) for k in _accumulate(1.0, 1.5, 0.1)]
    return _run(n_toys, rng, cases, 100, 1000 / 100)


def run_systematic(n_toys=10000, rng=None) -> _Study:
    """Chi-square distributions when the data hold an unfitted c * x**2 term."""
    cases = [(f"c={c:f}", c, 1.0) for c in _accumulate(0.0, 5.0e-4, 1.0e-4)]
    return _run(n_toys, rng, cases, 100, 1000 / 100)


def _plot(study: _Study, output: str, show: bool) -> None:
    import matplotlib

    if not show:
        matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, (top, bottom) = plt.subplots(2, 1, figsize=(16, 9))
    x, y, yerr = study.points
    top.errorbar(x, y, yerr=yerr, fmt="o", color="black")
    top.plot(x, study.fit(x), color="red")
    top.set_xlabel("Amplitude [mV]")
    top.set_ylabel("Energy [keV]")
    for label, histogram in study.histograms.items():
        bottom.stairs(histogram.contents, histogram.bin_edges(), label=label)
    bottom.stairs(
        study.theory.contents, study.theory.bin_edges(), color="red", linewidth=2,
        label="theory",
    )
    bottom.set_xlabel("χ²")
    bottom.legend()
    fig.savefig(output)
    if show:
        plt.show()
    plt.close(fig)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Compare minimum chi-square values of line fits with the chi-square law."
    )
    parser.add_argument(
        "--study", choices=("basic", "overestimated", "systematic"), default="basic"
    )
    parser.add_argument("--toys", type=int, default=10000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--output", default=None)
    parser.add_argument("--show", action="store_true", help="open an interactive window")
    parser.add_argument("--no-plot", action="store_true", help="print results only")
    args = parser.parse_args(argv)

    runners = {
        "basic": (run_basic, "ScatterPlot.png"),
        "overestimated": (run_overestimated, "ScatterPlotOverestimatedUncertainties.png"),
        "systematic": (run_systematic, "ScatterPlotWithSystematic.png"),
    }
    runner, default_output = runners[args.study]
    study = runner(args.toys, np.random.default_rng(args.seed))
    for label, histogram in study.histograms.items():
        print(f"{label}: mean chi2 = {histogram.mean():g}")

    if not args.no_plot:
        _plot(study, args.output or default_output, args.show)
    return 0
"""A small Bayesian model base with flat priors, mode finding and Metropolis sampling."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from scipy.optimize import minimize

__all__ = ["Parameter", "Model"]


@dataclass
class Parameter:
    """A model parameter with a flat prior on [low, high]."""

    name: str
    low: float
    high: float
    nbins: int = 300

    @property
    def width(self) -> float:
        return self.high - self.low


class Model(ABC):
    """Base for likelihood models; subclasses supply log_likelihood."""

    def __init__(self, name="model"):
        self.name = name
        self.parameters: list[Parameter] = []
        self.samples: np.ndarray | None = None
        self.mode_value: float | None = None
        self._best_fit: np.ndarray | None = None

    def add_parameter(self, name, low, high) -> Parameter:
        """Add a parameter with a flat prior and return it."""
        if any(p.name == name for p in self.parameters):
            raise ValueError(f"parameter {name!r} already defined")
        if not high > low:
            raise ValueError(f"parameter {name!r}: upper limit must be above lower limit")
        parameter = Parameter(name, float(low), float(high))
        self.parameters.append(parameter)
        return parameter

    @abstractmethod
    def log_likelihood(self, pars):
        """Return the log-likelihood at the parameter values pars."""

    @property
    def best_fit_parameters(self) -> np.ndarray:
        if self._best_fit is None:
            raise RuntimeError("no fit or sampling has been run")
        return self._best_fit.copy()

    def _bounds(self) -> tuple[np.ndarray, np.ndarray]:
        lows = np.array([p.low for p in self.parameters])
        highs = np.array([p.high for p in self.parameters])
        return lows, highs

    def log_posterior(self, pars) -> float:
        """Log-likelihood plus the flat log-prior; -inf outside the parameter ranges."""
        values = np.asarray(pars, dtype=float)
        if values.shape != (len(self.parameters),):
            raise ValueError(
                f"expected {len(self.parameters)} parameter values, got {values.size}"
            )
        lows, highs = self._bounds()
        if np.any(values < lows) or np.any(values > highs):
            return -math.inf
        log_prior = -sum(math.log(p.width) for p in self.parameters)
        return float(self.log_likelihood(values)) + log_prior

    def _start(self, start) -> np.ndarray:
        lows, highs = self._bounds()
        if start is not None:
            return np.clip(np.asarray(start, dtype=float), lows, highs)
        if self._best_fit is not None:
            return self._best_fit.copy()
        return 0.5 * (lows + highs)

    def find_mode(self, start=None) -> np.ndarray:
        """Maximise the posterior within the parameter ranges and return the mode."""
        if not self.parameters:
            raise RuntimeError("model has no parameters")
        lows, highs = self._bounds()

        def objective(x: np.ndarray) -> float:
            value = self.log_posterior(x)
            return -value if math.isfinite(value) else math.inf

        size = len(self.parameters)
        result = minimize(
            objective,
            self._start(start),
            method="Nelder-Mead",
            bounds=list(zip(lows, highs)),
            options={
                "xatol": 1e-7 * float((highs - lows).max()),
                "fatol": 1e-9,
                "maxiter": 4000 * size,
                "maxfev": 8000 * size,
            },
        )
        self._best_fit = np.asarray(result.x, dtype=float)
        self.mode_value = -float(result.fun)
        return self._best_fit.copy()

    def reset_results(self) -> None:
        self.samples = None
        self.mode_value = None
        self._best_fit = None

    def marginalize(self, n_samples=100_000, burn_in=1000, rng=None) -> np.ndarray:
        """Sample the posterior with a Metropolis chain and return the samples.

        The proposal width is tuned during burn-in; the best point visited
        becomes the best fit if it beats the current one.
        """
        if not self.parameters:
            raise RuntimeError("model has no parameters")
        if n_samples < 1:
            raise ValueError("n_samples must be positive")
        if burn_in < 0:
            raise ValueError("burn_in must not be negative")
        rng = np.random.default_rng() if rng is None else rng

        lows, highs = self._bounds()
        step = 0.05 * (highs - lows)
        current = self._start(None)
        current_lp = self.log_posterior(current)
        best, best_lp = current.copy(), current_lp
        samples = np.empty((int(n_samples), len(self.parameters)))
        accepted_in_window = 0
        window = 100

        for iteration in range(int(burn_in) + int(n_samples)):
            proposal = current + rng.normal(0.0, step)
            lp = self.log_posterior(proposal)
            if math.isfinite(lp) and (
                lp >= current_lp or rng.random() < math.exp(lp - current_lp)
            ):
                current, current_lp = proposal, lp
                accepted_in_window += 1
                if lp > best_lp:
                    best, best_lp = proposal.copy(), lp
            if iteration < burn_in:
                if (iteration + 1) % window == 0:
                    rate = accepted_in_window / window
                    if rate > 0.3:
                        step *= 1.2
                    elif rate < 0.2:
                        step *= 0.8
                    accepted_in_window = 0
            else:
                samples[iteration - burn_in] = current

        self.samples = samples
        if self._best_fit is None or best_lp > self.log_posterior(self._best_fit):
            self._best_fit = best
            self.mode_value = best_lp
        return samples
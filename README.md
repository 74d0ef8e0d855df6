# toystats

Toy Monte Carlo experiments for learning statistics as used in physics:
counting statistics, exponential waiting times, Bayesian posteriors,
binned and unbinned likelihood fits, chi-square goodness of fit and a
small Metropolis–Hastings sampler.

Each study is a module with a `main` function and a console command that
runs the simulation, prints a short summary and draws its plots with
matplotlib. The building blocks are plain functions and classes you can
import and use on their own.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Commands

| Command | Study |
| --- | --- |
| `toystats-poisson-posterior` | Poisson distribution for λ = 5 next to the flat-prior posterior of the rate for n = 5; prints the posterior mean and variance |
| `toystats-exponential` | Time differences between uniformly spread events, fitted with an exponential; prints the theoretical and fitted rates |
| `toystats-scatter` | Minimum chi-square of straight-line fits (`--study basic`, `overestimated` or `systematic`) against the chi-square law |
| `toystats-binomial-poisson` | Binomial and Poisson descriptions of event counts (`--study poisson` for uniform times, `--study decay` for radioactive decay) |
| `toystats-histogram-fit` | Likelihood, Neyman chi-square and Pearson chi-square fits of a peak over a flat background |
| `toystats-correlation` | Independent Gaussian numbers versus the correlated chain of a Metropolis–Hastings sampler |
| `toystats-likelihood-ratio` | Likelihood-ratio goodness of fit compared with the chi-square distribution |
| `toystats-binned-unbinned` | Run-time ratio of unbinned extended-likelihood and binned Poisson fits |
| `toystats-decay-fit-n` | Fit of the initial number of nuclei from decay times, with binomial and Poisson likelihoods |
| `toystats-decay-fit-halflife` | Fit of the initial number of nuclei, and the implied half-life, from binned decay times with binomial, multinomial and Poisson likelihoods |

Run a command without arguments to run its study with its default
settings, for example:

```
toystats-exponential
```

Common options:

- `--output FILE` sets the image file the plot is saved to
  (`toystats-histogram-fit` takes `--output-prefix` and writes five numbered files).
- `--show` opens an interactive matplotlib window as well.
- `--no-plot` prints the results only.
- `--seed N` seeds the random generator (every command except
  `toystats-poisson-posterior`, which draws no random numbers).
- `--toys N` sets the number of toy experiments where a study has them;
  `toystats-exponential` takes `--events` and `toystats-correlation`
  takes `--samples` instead.

The default toy counts are large; `toystats-likelihood-ratio` in
particular performs 100 000 fits. Pass a smaller `--toys` for a quick run.

## Library use

Probability functions live in `toystats.distributions`:

```python
from toystats.distributions import smart_poisson, smart_binomial, chi_square_pdf

smart_poisson(5, 5.0, 1.0)         # P(n=5 | lambda=5)
smart_binomial(3, 100, 0.05, 1.0)  # P(k=3 | n=100, p=0.05)
chi_square_pdf(9.0, 9)             # chi-square density for 9 degrees of freedom
```

`smart_poisson` and `smart_binomial` work with logarithms of factorials,
so they stay finite far beyond the point where `poisson` and `binomial`
overflow (n above 170). The module also has `factorial`,
`log_factorial`, `binomial_coefficient` and `gaussian`.

`toystats.histogram.Histogram` is a fixed-width one-dimensional histogram
with `fill`, `find_bin`, `bin_center`, `bin_edges`, `set_content`,
`reset`, `integral`, `mean`, `std_dev`, `maximum` and `normalized`;
`Histogram2D` is its two-dimensional companion.

```python
import numpy as np
from toystats.histogram import Histogram

rng = np.random.default_rng(1)
h = Histogram(100, -5.0, 5.0)
h.fill(rng.normal(0.0, 1.0, 10_000))
print(h.mean(), h.std_dev())
```

Other building blocks include `toystats.scatter.fit_line` (weighted
straight-line fit), `toystats.exponential.fit_exponential`,
`toystats.histogram_fit.fit_spectrum` and
`toystats.correlation.metropolis_hastings`.

The likelihood models are built on `toystats.model.Model`, which holds
bounded parameters with flat priors, finds the posterior mode with
`find_mode` and samples it with a Metropolis chain in `marginalize`. The
models `LikelihoodRatio`, `BinnedVsUnbinned`, `RadioactiveDecayFit` and
`RadioactiveDecayHalflifeFit` each supply their own `log_likelihood`.

All simulations take a `numpy.random.Generator`, so results can be made
reproducible by seeding it.

## What it does not do

The studies write their plots as image files and print summaries to the
terminal; they do not save histograms or fit results in any data format.
The decay-fit commands compute the posterior of N on a grid rather than
by sampling, and they do not produce per-parameter summary reports.
[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "toystats"
version = "0.1.0"
description = "Toy Monte Carlo studies of counting statistics, point estimation and goodness of fit"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
    "matplotlib",
]
keywords = [
    "statistics",
    "monte-carlo",
    "poisson",
    "binomial",
    "likelihood",
    "chi-square",
    "radioactive-decay",
    "mcmc",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Physics",
    "Topic :: Scientific/Engineering :: Mathematics",
    "Topic :: Education",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
toystats-poisson-posterior = "toystats.histogram:main"
toystats-exponential = "toystats.exponential:main"
toystats-scatter = "toystats.scatter:main"
toystats-binomial-poisson = "toystats.binomial_poisson:main"
toystats-histogram-fit = "toystats.histogram_fit:main"
toystats-correlation = "toystats.correlation:main"
toystats-likelihood-ratio = "toystats.likelihood_ratio:main"
toystats-binned-unbinned = "toystats.binned_unbinned:main"
toystats-decay-fit-n = "toystats.decay_fit_n:main"
toystats-decay-fit-halflife = "toystats.decay_fit_halflife:main"

[tool.hatch.build.targets.wheel]
packages = ["toystats"]

[tool.hatch.build.targets.sdist]
include = [
    "toystats",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true

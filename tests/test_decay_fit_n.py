import math

import numpy as np
import pytest

from toystats.decay_fit_n import (
    FitMethod,
    RadioactiveDecayFit,
    log_binomial,
    log_poisson,
    main,
    normalize,
)
from toystats.distributions import log_factorial, smart_binomial, smart_poisson
from toystats.histogram import Histogram


def make_model(seed=1):
    return RadioactiveDecayFit(np.random.default_rng(seed))


def test_log_binomial_plus_k_factorial_matches_binomial():
    value = log_binomial(3, 10, 0.2) + log_factorial(3)
    assert value == pytest.approx(math.log(smart_binomial(3, 10, 0.2)))


def test_log_binomial_zero_successes_matches_binomial():
    assert log_binomial(0, 10, 0.5) == pytest.approx(math.log(smart_binomial(0, 10, 0.5)))


def test_log_poisson_plus_factorial_matches_poisson():
    value = log_poisson(4, 2.5) - log_factorial(4)
    assert value == pytest.approx(math.log(smart_poisson(4, 2.5)))


def test_log_poisson_of_zero_counts():
    assert log_poisson(0, 3.0) == pytest.approx(-3.0)


def test_normalize_sums_to_one():
    histogram = Histogram(4, 0.0, 4.0)
    histogram.fill([0.5, 1.5, 1.5, 3.5])
    result = normalize(histogram)
    assert result is histogram
    assert histogram.integral() == pytest.approx(1.0)
    assert histogram.contents[1] == pytest.approx(0.5)


def test_normalize_empty_raises():
    with pytest.raises(ValueError):
        normalize(Histogram(3, 0.0, 1.0))


def test_model_data_consistent():
    model = make_model()
    assert model.times.max() < model.delta_t
    assert 0 < model.n_detected <= model.n_nuclei
    assert model.data.entries == model.n_detected
    assert model.data.integral() == pytest.approx(model.n_detected)


def test_model_probability_for_three_halflives():
    model = make_model()
    assert model.p == pytest.approx(0.875)
    assert model.lam == pytest.approx(model.n_nuclei * model.p)


def test_parameter_range_starts_at_detected_count():
    model = make_model()
    assert model.n_min >= model.n_detected
    assert model.n_max == pytest.approx(model.n_nuclei + 7.0 * math.sqrt(model.n_nuclei))


def test_same_seed_same_data():
    first = make_model(7).times
    second = make_model(7).times
    assert len(first) == make_model(7).n_detected
    assert first.tolist() == second.tolist()


def test_likelihood_peaks_inside_range():
    model = make_model()
    centre = model.n_detected / model.p
    for method in FitMethod:
        model.method = method
        assert model.log_likelihood([centre]) > model.log_likelihood([model.n_max])
        assert model.log_likelihood([centre]) > model.log_likelihood([model.n_min])


def test_methods_give_different_values():
    model = make_model()
    model.method = FitMethod.BINOMIAL
    binomial = model.log_likelihood([1000.0])
    model.method = FitMethod.POISSON
    assert model.log_likelihood([1000.0]) != pytest.approx(binomial)


def test_poisson_mode_at_count_over_probability():
    model = make_model()
    model.method = FitMethod.POISSON
    expected = model.n_detected / model.p
    best = model.find_mode([expected])
    assert float(best[0]) == pytest.approx(expected, rel=1e-3)


def test_binomial_mode_near_count_over_probability():
    model = make_model()
    model.method = FitMethod.BINOMIAL
    best = model.find_mode([0.5 * (model.n_min + model.n_max)])
    assert float(best[0]) == pytest.approx(model.n_detected / model.p, rel=2e-2)


def test_best_fit_curve_halves_after_one_halflife():
    model = make_model()
    model.method = FitMethod.POISSON
    model.find_mode([model.n_detected / model.p])
    ratio = model.best_fit_curve(model.halflife) / model.best_fit_curve(0.0)
    assert ratio == pytest.approx(0.5)


def test_main_prints_both_methods(capsys):
    assert main(["--seed", "3", "--no-plot"]) == 0
    out = capsys.readouterr().out
    assert "Binomial" in out
    assert "Poisson" in out
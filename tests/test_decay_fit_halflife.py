import math

import numpy as np
import pytest

from toystats.decay_fit_halflife import (
    FitMethod,
    RadioactiveDecayHalflifeFit,
    log_binomial,
    main,
)
from toystats.distributions import smart_binomial


def make_model(seed=2):
    return RadioactiveDecayHalflifeFit(np.random.default_rng(seed))


def test_log_binomial_matches_binomial():
    assert log_binomial(3, 10, 0.2) == pytest.approx(math.log(smart_binomial(3, 10, 0.2)))


def test_log_binomial_large_n_matches_binomial():
    assert log_binomial(40, 200, 0.25) == pytest.approx(
        math.log(smart_binomial(40, 200, 0.25))
    )


def test_model_data_consistent():
    model = make_model()
    assert np.all(model.times < model.delta_t)
    assert model.data.integral() == pytest.approx(model.n_detected)
    assert model.n_min == model.n_detected


def test_probability_for_two_halflives():
    model = make_model()
    assert model.p == pytest.approx(0.75)


def test_observables_recover_true_rate():
    model = make_model()
    observed = model.observables([model.n_detected / model.p])
    assert observed.rate == pytest.approx(model.decay_rate)
    assert observed.halflife == pytest.approx(138.376)


def test_observables_rate_times_halflife_is_log2():
    model = make_model()
    observed = model.observables([1100.0])
    assert observed.rate * observed.halflife == pytest.approx(math.log(2.0))


def test_observables_rate_decreases_with_n():
    model = make_model()
    assert model.observables([900.0]).rate > model.observables([1200.0]).rate


def test_observables_reject_non_positive_n():
    with pytest.raises(ValueError):
        make_model().observables([0.0])


def test_likelihood_vanishes_at_detected_count():
    model = make_model()
    for method in FitMethod:
        model.method = method
        assert model.log_likelihood([float(model.n_detected)]) == -math.inf


def test_likelihood_prefers_true_region():
    model = make_model()
    centre = model.n_detected / model.p
    for method in FitMethod:
        model.method = method
        near = model.log_likelihood([centre])
        assert math.isfinite(near)
        assert near > model.log_likelihood([model.n_max])


def test_methods_give_different_values():
    model = make_model()
    values = set()
    for method in FitMethod:
        model.method = method
        values.add(round(model.log_likelihood([1000.0]), 6))
    assert len(values) == 3


def test_best_fit_curve_halves_after_one_halflife():
    model = make_model()
    model.method = FitMethod.POISSON
    model.find_mode([model.n_detected / model.p])
    ratio = model.best_fit_curve(model.halflife) / model.best_fit_curve(0.0)
    assert ratio == pytest.approx(0.5)


def test_main_prints_all_methods(capsys):
    assert main(["--seed", "4", "--no-plot"]) == 0
    out = capsys.readouterr().out
    for name in ("Binomial", "Multinomial", "Poisson", "Curve fit"):
        assert name in out
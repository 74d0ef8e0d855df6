import math

import numpy as np
import pytest

from toystats.model import Model, Parameter


class _Gaussian(Model):
    def __init__(self, centre, name="gauss"):
        super().__init__(name)
        self.centre = np.asarray(centre, dtype=float)
        for index in range(len(self.centre)):
            self.add_parameter(f"p{index}", -10.0, 10.0)

    def log_likelihood(self, pars):
        return -0.5 * float(np.sum((np.asarray(pars) - self.centre) ** 2))


def test_add_parameter_validation():
    model = _Gaussian([0.0])
    with pytest.raises(ValueError):
        Model.add_parameter(model, "p0", 0.0, 1.0)
    with pytest.raises(ValueError):
        Model.add_parameter(model, "q", 2.0, 1.0)
    parameter = Model.add_parameter(model, "q", 1.0, 3.0)
    assert isinstance(parameter, Parameter)
    assert parameter.width == pytest.approx(2.0)
    assert [p.name for p in model.parameters] == ["p0", "q"]


def test_abstract_model_cannot_be_created():
    with pytest.raises(TypeError):
        Model("bare")


def test_log_posterior_bounds_and_shape():
    model = _Gaussian([1.0, 2.0])
    assert Model.log_posterior(model, [11.0, 0.0]) == -math.inf
    with pytest.raises(ValueError):
        Model.log_posterior(model, [1.0])
    difference = Model.log_posterior(model, [1.0, 2.0]) - Model.log_posterior(
        model, [0.0, 0.0]
    )
    expected = model.log_likelihood([1.0, 2.0]) - model.log_likelihood([0.0, 0.0])
    assert difference == pytest.approx(expected)


def test_find_mode_reaches_centre():
    model = _Gaussian([1.5, -2.0])
    mode = Model.find_mode(model)
    assert mode == pytest.approx([1.5, -2.0], abs=1e-4)
    assert model.best_fit_parameters == pytest.approx([1.5, -2.0], abs=1e-4)
    assert model.mode_value == pytest.approx(
        Model.log_posterior(model, [1.5, -2.0]), abs=1e-8
    )


def test_find_mode_from_start_and_at_boundary():
    model = _Gaussian([12.0])
    mode = Model.find_mode(model, [-5.0])
    assert mode[0] == pytest.approx(10.0, abs=1e-4)


def test_best_fit_missing_before_and_after_reset():
    model = _Gaussian([0.5])
    with pytest.raises(RuntimeError):
        model.best_fit_parameters
    mode = Model.find_mode(model)
    assert mode[0] == pytest.approx(0.5, abs=1e-4)
    Model.reset_results(model)
    with pytest.raises(RuntimeError):
        model.best_fit_parameters
    assert model.samples is None


def test_find_mode_without_parameters():
    class Empty(Model):
        def log_likelihood(self, pars):
            return 0.0

    with pytest.raises(RuntimeError):
        Model.find_mode(Empty("empty"))


def test_marginalize_samples_posterior():
    model = _Gaussian([1.5])
    samples = Model.marginalize(model, 20000, 1000, np.random.default_rng(3))
    assert samples.shape == (20000, 1)
    assert samples.min() >= -10.0
    assert samples.max() <= 10.0
    assert samples.mean() == pytest.approx(1.5, abs=0.15)
    assert samples.std() == pytest.approx(1.0, abs=0.15)
    assert model.best_fit_parameters[0] == pytest.approx(1.5, abs=0.2)


def test_marginalize_rejects_bad_arguments():
    model = _Gaussian([0.0])
    with pytest.raises(ValueError):
        Model.marginalize(model, 0, 10)
    with pytest.raises(ValueError):
        Model.marginalize(model, 10, -1)
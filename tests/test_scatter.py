import numpy as np
import pytest

from toystats.histogram import Histogram
from toystats.scatter import (
    LineFit,
    ScatterConfig,
    fit_line,
    generate_points,
    main,
    run_basic,
    run_overestimated,
    run_systematic,
    simulate_chi2,
    theoretical_chi2,
)


def test_config_defaults_match_source_layout():
    config = ScatterConfig()
    assert config.n_points == 11
    assert config.ndf == 9
    np.testing.assert_allclose(config.x, np.arange(0.0, 1001.0, 100.0))


def test_config_rejects_bad_step():
    with pytest.raises(ValueError):
        ScatterConfig(step=0.0)


def test_fit_line_recovers_exact_line():
    x = np.arange(0.0, 1001.0, 100.0)
    y = 3.0 + 1.5 * x
    fit = fit_line(x, y, np.full_like(x, 10.0))
    assert fit.offset == pytest.approx(3.0, abs=1e-9)
    assert fit.slope == pytest.approx(1.5, rel=1e-12)
    assert fit.chi2 == pytest.approx(0.0, abs=1e-12)
    assert fit.ndf == 9
    np.testing.assert_allclose(fit(x), y)


def test_fit_line_errors_scale_with_sigma():
    x = np.arange(0.0, 1001.0, 100.0)
    y = 3.0 + 1.5 * x
    narrow = fit_line(x, y, np.full_like(x, 10.0))
    wide = fit_line(x, y, np.full_like(x, 20.0))
    assert wide.slope_error == pytest.approx(2 * narrow.slope_error)
    assert wide.offset_error == pytest.approx(2 * narrow.offset_error)


@pytest.mark.parametrize(
    "x, y, sigma",
    [
        ([0.0, 1.0], [1.0], [1.0, 1.0]),
        ([0.0], [1.0], [1.0]),
        ([0.0, 1.0], [1.0, 2.0], [1.0, 0.0]),
        ([2.0, 2.0], [1.0, 2.0], [1.0, 1.0]),
    ],
)
def test_fit_line_rejects_bad_input(x, y, sigma):
    with pytest.raises(ValueError):
        fit_line(x, y, sigma)


def test_generate_points_uncertainties_in_range():
    config = ScatterConfig()
    x, y, yerr = generate_points(config, np.random.default_rng(1))
    assert x.shape == y.shape == yerr.shape == (11,)
    assert np.all((yerr >= 10.0) & (yerr <= 100.0))


def test_generate_points_error_scale_and_quadratic():
    config = ScatterConfig()
    x, y1, e1 = generate_points(config, np.random.default_rng(7))
    _, y2, e2 = generate_points(config, np.random.default_rng(7), 0.0, 1.3)
    _, y3, _ = generate_points(config, np.random.default_rng(7), 2.0e-4, 1.0)
    np.testing.assert_allclose(y1, y2)
    np.testing.assert_allclose(e2, 1.3 * e1)
    np.testing.assert_allclose(y3 - y1, 2.0e-4 * x**2, atol=1e-9)


def test_generate_points_rejects_nonpositive_scale():
    with pytest.raises(ValueError):
        generate_points(ScatterConfig(), np.random.default_rng(0), 0.0, 0.0)


def test_simulate_chi2_mean_near_ndf():
    chi2 = simulate_chi2(ScatterConfig(), 4000, np.random.default_rng(3))
    assert chi2.shape == (4000,)
    assert np.all(chi2 >= 0)
    assert abs(chi2.mean() - 9.0) < 0.5


def test_simulate_chi2_scales_with_inverse_square_of_errors():
    config = ScatterConfig()
    base = simulate_chi2(config, 50, np.random.default_rng(5))
    scaled = simulate_chi2(config, 50, np.random.default_rng(5), 0.0, 2.0)
    np.testing.assert_allclose(scaled, base / 4.0)


def test_simulate_chi2_agrees_with_fit_line():
    config = ScatterConfig()
    chi2 = simulate_chi2(config, 1, np.random.default_rng(11))
    x, y, yerr = generate_points(config, np.random.default_rng(11))
    assert chi2[0] == pytest.approx(fit_line(x, y, yerr).chi2)


def test_simulate_chi2_quadratic_increases_chi2():
    config = ScatterConfig()
    plain = simulate_chi2(config, 500, np.random.default_rng(2))
    biased = simulate_chi2(config, 500, np.random.default_rng(2), 5.0e-4)
    assert biased.mean() > plain.mean()


def test_simulate_chi2_requires_toys():
    with pytest.raises(ValueError):
        simulate_chi2(ScatterConfig(), 0)


def test_theoretical_chi2_integral_matches_toys():
    config = ScatterConfig()
    histogram = theoretical_chi2(Histogram(1000, 0.0, config.max_chi2), 10000, 9)
    assert histogram.integral() == pytest.approx(10000, rel=1e-2)
    scaled = theoretical_chi2(Histogram(1000, 0.0, config.max_chi2), 10000, 9, 10.0)
    np.testing.assert_allclose(scaled.contents, 10.0 * histogram.contents)


def test_run_basic_fills_histogram():
    study = run_basic(200, np.random.default_rng(0))
    assert list(study.histograms) == ["chi2"]
    histogram = study.histograms["chi2"]
    assert histogram.nbins == 1000
    assert histogram.entries == 200
    assert isinstance(study.fit, LineFit) and study.fit.ndf == 9


def test_run_overestimated_labels():
    study = run_overestimated(50, np.random.default_rng(0))
    assert list(study.histograms) == [
        "k=1.000000",
        "k=1.100000",
        "k=1.200000",
        "k=1.300000",
        "k=1.400000",
    ]
    assert all(h.nbins == 100 for h in study.histograms.values())


def test_run_systematic_labels():
    study = run_systematic(50, np.random.default_rng(0))
    labels = list(study.histograms)
    assert len(labels) == 6
    assert labels[0] == "c=0.000000"
    assert labels[-1] == "c=0.000500"


def test_main_without_plot(capsys):
    assert main(["--toys", "20", "--seed", "1", "--no-plot"]) == 0
    assert "mean chi2" in capsys.readouterr().out
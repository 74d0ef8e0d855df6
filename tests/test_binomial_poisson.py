import numpy as np
import pytest

from toystats.binomial_poisson import (
    CountingCase,
    decay_probability,
    histogram_range,
    main,
    run_decay,
    run_poisson,
    simulate_decay_case,
    simulate_uniform_case,
)


def test_histogram_range_small_expectation_starts_at_minus_half():
    assert histogram_range(0.1) == (-0.5, 2.5, 3)


@pytest.mark.parametrize("expected", [0.5, 5.0, 50.0, 500.0])
def test_histogram_range_invariants(expected):
    low, high, nbins = histogram_range(expected)
    assert low >= -0.5
    assert high - low == nbins
    assert low < expected < high
    assert low + 0.5 == int(low + 0.5)


def test_histogram_range_rejects_negative():
    with pytest.raises(ValueError):
        histogram_range(-1.0)


def test_decay_probability_one_halflife_is_half():
    assert decay_probability(1.0, 138.4) == pytest.approx(0.5)
    assert decay_probability(0.0, 138.4) == 0.0


def test_decay_probability_compounds():
    p1 = decay_probability(1.0, 10.0)
    assert decay_probability(2.0, 10.0) == pytest.approx(1.0 - (1.0 - p1) ** 2)


def test_decay_probability_rejects_bad_halflife():
    with pytest.raises(ValueError):
        decay_probability(1.0, 0.0)


def test_uniform_case_counts_and_predictions():
    rng = np.random.default_rng(1)
    case = simulate_uniform_case(10, 0.5, 2000, rng)
    assert isinstance(case, CountingCase)
    assert case.label == "N=10 p=0.500000"
    assert case.lam == pytest.approx(5.0)
    assert case.data.entries == 2000
    assert case.data.integral() == pytest.approx(2000)
    assert abs(case.data.mean() - 5.0) < 0.2
    assert case.binomial.integral() == pytest.approx(2000, rel=1e-9)
    assert case.poisson.integral() == pytest.approx(2000, rel=1e-5)
    assert case.binomial.contents[-1] == 0.0
    assert case.poisson.contents[-1] == 0.0
    assert int(np.argmax(case.binomial.contents)) == case.binomial.find_bin(5.0)


def test_uniform_case_rejects_bad_arguments():
    with pytest.raises(ValueError):
        simulate_uniform_case(10, 1.5, 10)
    with pytest.raises(ValueError):
        simulate_uniform_case(10, 0.5, 0)
    with pytest.raises(ValueError):
        simulate_uniform_case(0, 0.5, 10)


def test_decay_case_matches_expectation():
    rng = np.random.default_rng(2)
    case = simulate_decay_case(100, 1.0, 138.4, 1000, rng)
    assert case.label == "N=100 dt=1.000000 T1/2"
    assert case.p == pytest.approx(0.5)
    assert case.lam == pytest.approx(50.0)
    assert case.data.entries == 1000
    assert abs(case.data.mean() - 50.0) < 1.5


def test_run_poisson_order():
    cases = run_poisson(20, np.random.default_rng(3))
    assert len(cases) == 12
    assert cases[0].label == "N=10 p=0.010000"
    assert cases[-1].label == "N=1000 p=0.500000"
    assert all(case.data.entries == 20 for case in cases)


def test_run_decay_probabilities_increase():
    cases = run_decay(20, np.random.default_rng(4))
    assert len(cases) == 9
    probabilities = [case.p for case in cases]
    assert probabilities == sorted(probabilities)
    assert all(case.n == 100 for case in cases)


def test_main_prints_each_case(capsys):
    assert main(["--study", "decay", "--toys", "5", "--seed", "1", "--no-plot"]) == 0
    out = capsys.readouterr().out
    assert "N=100 dt=0.100000 T1/2" in out
    assert len(out.strip().splitlines()) == 9
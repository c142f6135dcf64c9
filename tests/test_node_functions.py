"""Tests for the built-in node algorithms."""

import numpy as np
import pytest

from scipy import stats

import modelgraph as mg
from modelgraph.algorithms import (
    CalcNodes,
    CalcNodesMany,
    GetLogProbNodes,
    GetLogProbNodesMany,
    SetAndCalculate,
    SimNodes,
    SimNodesMany,
)


def test_sim_nodes(regression_model: mg.Model, regression_data: np.ndarray) -> None:
    sim = SimNodes(regression_model, ["mu", "sigma"])
    assert sim.nodes == ("mu", "sigma")
    sim()
    assert regression_model.get_value("mu") != 1.0
    np.testing.assert_array_equal(regression_model["y"], regression_data)

    SimNodes(regression_model, "y", include_data=True)()
    assert not np.array_equal(regression_model["y"], regression_data)


def test_calc_nodes_includes_dependents(chain_model: mg.Model) -> None:
    calc = CalcNodes(chain_model, "a")
    assert calc.nodes == ("a", "b", "c")
    chain_model.set_value("a", 2.0)
    assert calc() == pytest.approx(stats.norm.logpdf(0.5, 3.0, 1.0))

    assert CalcNodes(chain_model).nodes == ("a", "b", "c")


def test_get_log_prob_nodes(regression_model: mg.Model) -> None:
    total = regression_model.calculate()
    assert GetLogProbNodes(regression_model)() == pytest.approx(total)
    assert GetLogProbNodes(regression_model, "ybar")() == 0.0


def test_set_and_calculate(
    regression_model: mg.Model, regression_data: np.ndarray
) -> None:
    objective = SetAndCalculate(regression_model, ["mu", "sigma"])
    assert objective.n_values == 2

    logp = objective(np.array([1.0, 2.0]))
    expected = (
        stats.norm.logpdf(1.0, 0.0, 10.0)
        + stats.halfnorm.logpdf(2.0, scale=2.0)
        + stats.norm.logpdf(regression_data, 1.0, 2.0).sum()
    )
    assert logp == pytest.approx(expected)

    # The best of a few candidates is the one closest to the sample mean
    candidates = [0.0, regression_data.mean(), 3.0]
    scores = [objective(np.array([mu, 1.0])) for mu in candidates]
    assert int(np.argmax(scores)) == 1


def test_sim_nodes_many(regression_model: mg.Model) -> None:
    mv = mg.ModelValues.from_model(regression_model, ["mu", "sigma"])
    sim = SimNodesMany(regression_model, ["mu", "sigma"], mv)
    sim(50)
    assert mv.size == 50
    assert np.all(mv["sigma"] > 0)
    assert len(np.unique(mv["mu"])) == 50


def test_calc_nodes_many(
    regression_model: mg.Model, regression_data: np.ndarray
) -> None:
    mv = mg.ModelValues.from_model(
        regression_model, ["mu", "sigma"], size=3, include_log_prob=True
    )
    for row, (mu, sigma) in enumerate([(0.0, 1.0), (1.0, 2.0), (2.0, 0.5)]):
        mv.set("mu", row, mu)
        mv.set("sigma", row, sigma)

    calc = CalcNodesMany(regression_model, ["mu", "sigma"], mv)
    assert calc.saved_nodes == ("mu", "sigma")
    totals = calc(save_log_lik=True)

    assert totals.shape == (3,)
    for row, (mu, sigma) in enumerate([(0.0, 1.0), (1.0, 2.0), (2.0, 0.5)]):
        expected = (
            stats.norm.logpdf(mu, 0.0, 10.0)
            + stats.halfnorm.logpdf(sigma, scale=2.0)
            + stats.norm.logpdf(regression_data, mu, sigma).sum()
        )
        assert totals[row] == pytest.approx(expected)
        assert mv.get_log_prob("mu", row) == pytest.approx(
            stats.norm.logpdf(mu, 0.0, 10.0)
        )


def test_get_log_prob_nodes_many(regression_model: mg.Model) -> None:
    mv = mg.ModelValues.from_model(
        regression_model, ["mu", "sigma"], size=2, include_log_prob=True
    )
    mv.set("mu", 1, 0.5)
    mv.set("sigma", 0, 1.0)
    mv.set("sigma", 1, 1.0)
    CalcNodesMany(regression_model, ["mu", "sigma"], mv)(save_log_lik=True)

    reader = GetLogProbNodesMany(regression_model, ["mu", "sigma"], mv)
    totals = reader()
    for row in range(2):
        assert totals[row] == pytest.approx(
            float(mv.get_log_prob("mu", row) + mv.get_log_prob("sigma", row))
        )


def test_many_algorithms_with_progress_bar(regression_model: mg.Model) -> None:
    mv = mg.ModelValues.from_model(regression_model, ["mu"])
    SimNodesMany(regression_model, "mu", mv, show_progress=True)(3)
    assert mv.size == 3

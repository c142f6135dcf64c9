"""Tests for the evaluation passes: calculate, simulate, get_log_prob,
calculate_diff and get_param."""

import warnings

import numpy as np
import pytest

from scipy import stats

import modelgraph as mg
from modelgraph import operations as ops
from modelgraph.exceptions import (
    InvalidDensityError,
    InvalidParameterName,
    MultipleNodesNotSupported,
    StaleDependencyWarning,
)
from modelgraph.model.components import parameters as dists
from modelgraph.model.components.transformations import transformed_parameters


def _regression_log_prob(model: mg.Model, data: np.ndarray) -> float:
    mu, sigma = model.get_value("mu"), model.get_value("sigma")
    return float(
        stats.norm.logpdf(mu, 0.0, 10.0)
        + stats.halfnorm.logpdf(sigma, scale=2.0)
        + stats.norm.logpdf(data, mu, sigma).sum()
    )


# calculate
def test_chain_calculate_updates_values_and_log_prob(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 2.0)
    logp = chain_model.calculate(["a", "b", "c"])
    assert chain_model.get_value("b") == pytest.approx(3.0)
    assert logp == pytest.approx(stats.norm.logpdf(0.5, 3.0, 1.0))
    assert chain_model.get_log_prob_value("c") == pytest.approx(logp)

    chain_model.set_value("a", 5.0)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        logp = chain_model.calculate(["b", "c"])
    assert chain_model.get_value("b") == pytest.approx(6.0)
    assert logp == pytest.approx(stats.norm.logpdf(0.5, 6.0, 1.0))


def test_calculate_whole_model(
    regression_model: mg.Model, regression_data: np.ndarray
) -> None:
    logp = regression_model.calculate()
    assert logp == pytest.approx(_regression_log_prob(regression_model, regression_data))
    assert regression_model.get_value("ybar") == pytest.approx(regression_data.mean())


def test_calculate_is_idempotent(regression_model: mg.Model) -> None:
    first = regression_model.calculate()
    values = regression_model.get_values(None)
    second = regression_model.calculate()
    assert first == second
    np.testing.assert_array_equal(regression_model.get_values(None), values)


def test_calculate_sum_does_not_depend_on_order_within_a_level(
    regression_model: mg.Model,
) -> None:
    ys = [f"y[{i}]" for i in range(1, 6)]
    forward = regression_model.calculate(ys)
    backward = regression_model.calculate(ys[::-1])
    assert forward == pytest.approx(backward)


def test_calculate_visits_nodes_in_the_order_given(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 1.0)
    chain_model.calculate(["b"])
    chain_model.set_value("a", 10.0)

    # c reads the old b before b is updated
    with pytest.warns(StaleDependencyWarning, match="have not been recalculated"):
        logp = chain_model.calculate(["c", "b"])
    assert logp == pytest.approx(stats.norm.logpdf(0.5, 2.0, 1.0))
    assert chain_model.get_value("b") == pytest.approx(11.0)


def test_calculate_empty_list(chain_model: mg.Model) -> None:
    assert chain_model.calculate([]) == 0.0


def test_out_of_support_is_negative_infinity() -> None:
    code = mg.ModelCode()
    code["s"] = dists.HalfNormal(sigma=1.0)
    model = mg.Model(code, inits={"s": -1.0})
    assert model.calculate() == -np.inf
    assert model.get_log_prob() == -np.inf


def test_nan_density_raises_and_is_stored() -> None:
    code = mg.ModelCode()
    code["x"] = dists.Normal(mu=0.0, sigma=mg.ref("s"))
    model = mg.Model(code, inits={"x": 0.0, "s": -1.0})
    with pytest.raises(InvalidDensityError) as excinfo:
        model.calculate()
    assert excinfo.value.node == "x"
    assert np.isnan(model.get_log_prob_value("x"))


@pytest.mark.parametrize("n", [np.nan, np.inf, -1.0, 2.5])
def test_invalid_number_of_trials_raises(n: float) -> None:
    code = mg.ModelCode()
    code["k[1:3]"] = dists.Multinomial(N=mg.ref("n"), theta=[0.2, 0.3, 0.5])
    model = mg.Model(code, inits={"n": n, "k": [2, 3, 5]})
    with pytest.raises(InvalidDensityError) as excinfo:
        model.calculate()
    assert excinfo.value.node == "k[1:3]"
    assert np.isnan(model.get_log_prob_value("k[1:3]"))


def test_invalid_concentration_raises() -> None:
    code = mg.ModelCode()
    code["p[1:3]"] = dists.Dirichlet(alpha=mg.ref("a"))
    model = mg.Model(code, inits={"a": [1.0, np.nan, 1.0], "p": [0.2, 0.3, 0.5]})
    with pytest.raises(InvalidDensityError):
        model.calculate()
    assert np.isnan(model.get_log_prob_value("p[1:3]"))

    # Valid parameters with a value off the simplex
    model.set_value("a", [1.0, 1.0, 1.0])
    model.set_value("p", [0.5, 0.5, 0.5])
    assert model.calculate() == -np.inf


# simulate
def test_simulate_skips_data_by_default(
    regression_model: mg.Model, regression_data: np.ndarray
) -> None:
    regression_model.simulate()
    np.testing.assert_array_equal(regression_model["y"], regression_data)

    regression_model.simulate("y", include_data=True)
    assert not np.array_equal(regression_model["y"], regression_data)


def test_simulate_recomputes_deterministic_nodes(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 100.0)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        chain_model.simulate(["b", "c"])
    assert chain_model.get_value("b") == pytest.approx(101.0)
    assert abs(chain_model.get_value("c") - 101.0) < 10.0


def test_simulate_leaves_log_probs_stale(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 0.0)
    chain_model.calculate(["b", "c"])
    chain_model.simulate(["c"])
    assert chain_model.is_stale("c")
    with pytest.warns(StaleDependencyWarning):
        chain_model.get_log_prob("c")


def test_simulate_block_nodes_have_node_shape() -> None:
    code = mg.ModelCode()
    code["x[1:4]"] = dists.Normal(mu=0.0, sigma=1.0)
    code["p"] = dists.Dirichlet(alpha=[1.0, 1.0, 1.0])
    model = mg.Model(code, seed=0)
    model.simulate()
    assert np.all(np.isfinite(model["x"]))
    assert model["p"].sum() == pytest.approx(1.0)


def test_simulate_skips_input_nodes(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 1.0)
    chain_model.simulate()
    assert chain_model.get_value("a") == 1.0


def test_simulated_values_follow_the_distribution() -> None:
    code = mg.ModelCode()
    code["x[1:2000]"] = dists.Normal(mu=3.0, sigma=0.5)
    model = mg.Model(code, seed=11)
    model.simulate()
    assert model["x"].mean() == pytest.approx(3.0, abs=0.05)
    assert model["x"].std() == pytest.approx(0.5, abs=0.05)


# get_log_prob
def test_get_log_prob_reads_without_recomputing(regression_model: mg.Model) -> None:
    total = regression_model.calculate()
    regression_model.set_value("mu", 0.2)

    with pytest.warns(StaleDependencyWarning):
        stored = regression_model.get_log_prob()
    assert stored == pytest.approx(total)

    # Non-stochastic nodes contribute nothing
    assert regression_model.get_log_prob("ybar") == 0.0


def test_get_log_prob_leaves_the_model_unchanged(regression_model: mg.Model) -> None:
    regression_model.calculate()
    regression_model.set_value("mu", -0.7)
    stochastic = regression_model.get_node_names(stochastic_only=True)
    everything = regression_model.get_node_names(include_inputs=True)

    def snapshot():
        return (
            regression_model.get_values(None),
            [regression_model.get_log_prob_value(node) for node in stochastic],
            [regression_model.is_stale(node) for node in everything],
        )

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", StaleDependencyWarning)
        values, log_probs, stale = snapshot()
        regression_model.get_log_prob()
        regression_model.get_log_prob(["mu", "y"])
        after_values, after_log_probs, after_stale = snapshot()

    np.testing.assert_array_equal(after_values, values)
    np.testing.assert_array_equal(after_log_probs, log_probs)
    assert after_stale == stale
    assert any(stale)


def test_get_log_prob_of_subset(regression_model: mg.Model) -> None:
    regression_model.calculate()
    ys = [f"y[{i}]" for i in range(1, 6)]
    expected = sum(regression_model.get_log_prob_value(y) for y in ys)
    assert regression_model.get_log_prob("y") == pytest.approx(expected)


# calculate_diff
def test_calculate_diff_is_new_minus_old(regression_model: mg.Model) -> None:
    regression_model.calculate()
    calc_nodes = regression_model.get_dependencies("mu", stop_at_stochastic=True)
    old = regression_model.get_log_prob(calc_nodes)

    regression_model.set_value("mu", 1.4)
    diff = regression_model.calculate_diff(calc_nodes)
    new = regression_model.get_log_prob(calc_nodes)
    assert diff == pytest.approx(new - old)


def test_calculate_diff_without_change_is_zero(regression_model: mg.Model) -> None:
    regression_model.calculate()
    assert regression_model.calculate_diff() == 0.0


# get_param
def test_get_param_uses_current_parent_values(regression_model: mg.Model) -> None:
    assert regression_model.get_param("y[2]", "mu") == pytest.approx(1.0)
    assert regression_model.get_param("y[2]", "tau") == pytest.approx(1 / 1.5**2)
    regression_model.set_value("sigma", 0.5)
    assert regression_model.get_param("y[2]", "var") == pytest.approx(0.25)
    assert regression_model.get_param("mu", "sigma") == pytest.approx(10.0)


def test_get_param_errors(regression_model: mg.Model) -> None:
    with pytest.raises(InvalidParameterName, match="no parameter 'lambda_'"):
        regression_model.get_param("mu", "lambda_")
    with pytest.raises(InvalidParameterName, match="not stochastic"):
        regression_model.get_param("ybar", "mu")
    with pytest.raises(MultipleNodesNotSupported):
        regression_model.get_param("y", "mu")


def test_vector_transformations_and_multivariate_densities() -> None:
    code = mg.ModelCode()
    code["w[1:2]"] = ops.matmul([[1.0, 2.0], [3.0, 4.0]], mg.ref("v"))
    code["s"] = ops.inprod(mg.ref("v"), mg.ref("v"))
    code["g"] = transformed_parameters.FunctionParameter(
        lambda t, r: t * r, name="double", t=mg.ref("s"), r=2.0
    )
    cov = [[1.0, 0.5], [0.5, 2.0]]
    code["z"] = dists.MultivariateNormal(mu=mg.ref("w"), cov=cov)
    code["k"] = dists.Multinomial(N=10, theta=[0.2, 0.3, 0.5])
    model = mg.Model(
        code, inits={"v": [1.0, 1.0], "z": [3.0, 7.0], "k": [2, 3, 5]}, seed=3
    )
    assert model.get_variable("z").shape == (2,)
    assert model.get_variable("k").shape == (3,)

    logp = model.calculate()
    np.testing.assert_allclose(model["w"], [3.0, 7.0])
    assert model.get_value("s") == 2.0
    assert model.get_value("g") == 4.0
    assert logp == pytest.approx(
        stats.multivariate_normal.logpdf([3.0, 7.0], [3.0, 7.0], cov)
        + stats.multinomial.logpmf([2, 3, 5], 10, [0.2, 0.3, 0.5])
    )

    model.simulate(["k"])
    assert model["k"].sum() == 10

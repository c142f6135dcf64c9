"""Tests for model components, operations and model descriptions."""

import numpy as np
import pytest

from scipy import stats

import modelgraph as mg
from modelgraph import operations as ops
from modelgraph.exceptions import InvalidParameterName, ModelDefinitionError
from modelgraph.model.components import parameters as dists
from modelgraph.model.components.constants import Constant
from modelgraph.model.components.references import NodeReference
from modelgraph.model.components.transformations import transformed_parameters


def _read_nothing(reference):
    raise AssertionError(f"Unexpected read of {reference}")


def test_plain_values_become_constants() -> None:
    dist = dists.Normal(mu=0.0, sigma=2)
    assert isinstance(dist["mu"], Constant)
    assert dist["sigma"].BASE_DTYPE == "int"
    assert dist.parameter_names == ("mu", "sigma")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"mu": 0.0},
        {"mu": 0.0, "sigma": 1.0, "tau": 1.0},
        {"mu": 0.0, "sigma": 1.0, "scale": 1.0},
    ],
)
def test_invalid_parametrization_raises_type_error(kwargs: dict) -> None:
    with pytest.raises(TypeError):
        dists.Normal(**kwargs)


@pytest.mark.parametrize(
    "build",
    [
        lambda: dists.Normal(mu=0.0, sigma=-1.0),
        lambda: dists.Normal(mu=0.0, sigma=0.0),
        lambda: dists.Bernoulli(theta=1.5),
        lambda: dists.Multinomial(N=10, theta=[0.5, 0.6]),
    ],
)
def test_constraint_violations_raise_value_error(build) -> None:
    with pytest.raises(ValueError):
        build()


def test_nested_distributions_are_rejected() -> None:
    with pytest.raises(ModelDefinitionError, match="separate node"):
        dists.Normal(mu=dists.Normal(mu=0.0, sigma=1.0), sigma=1.0)


def test_log_density_matches_scipy() -> None:
    dist = dists.Normal(mu=1.0, tau=4.0)
    declared = dist.evaluate_parents(_read_nothing)
    assert dist.log_density(0.3, declared) == pytest.approx(
        stats.norm.logpdf(0.3, loc=1.0, scale=0.5)
    )

    gamma = dists.Gamma(alpha=2.0, beta=3.0)
    declared = gamma.evaluate_parents(_read_nothing)
    assert gamma.log_density(0.7, declared) == pytest.approx(
        stats.gamma.logpdf(0.7, a=2.0, scale=1 / 3.0)
    )

    poisson = dists.Poisson(lambda_=3.0)
    declared = poisson.evaluate_parents(_read_nothing)
    assert poisson.log_density(np.array([1.0, 4.0]), declared) == pytest.approx(
        stats.poisson.logpmf([1, 4], mu=3.0).sum()
    )


def test_out_of_support_density_is_negative_infinity() -> None:
    dist = dists.HalfNormal(sigma=1.0)
    assert dist.log_density(-1.0, dist.evaluate_parents(_read_nothing)) == -np.inf


@pytest.mark.parametrize(
    "dist, name, expected",
    [
        (dists.Normal(mu=0.0, sigma=2.0), "tau", 0.25),
        (dists.Normal(mu=0.0, sigma=2.0), "var", 4.0),
        (dists.Normal(mu=3.0, tau=4.0), "sigma", 0.5),
        (dists.Normal(mu=3.0, var=9.0), "mean", 3.0),
        (dists.Gamma(alpha=2.0, scale=0.5), "beta", 2.0),
        (dists.Gamma(alpha=2.0, beta=4.0), "mean", 0.5),
        (dists.Exponential(beta=4.0), "scale", 0.25),
        (dists.Beta(alpha=1.0, beta=3.0), "mean", 0.25),
        (dists.Binomial(N=10, theta=0.3), "mean", 3.0),
        (dists.Uniform(lower=1.0, upper=3.0), "mean", 2.0),
    ],
)
def test_get_param_derivations(dist, name: str, expected: float) -> None:
    value = dist.get_param(name, dist.evaluate_parents(_read_nothing))
    assert float(np.asarray(value)) == pytest.approx(expected)


def test_get_param_unknown_name_raises() -> None:
    dist = dists.Normal(mu=0.0, sigma=1.0)
    with pytest.raises(InvalidParameterName, match="no parameter 'alpha'"):
        dist.get_param("alpha", dist.evaluate_parents(_read_nothing))


def test_sample_has_node_shape() -> None:
    rng = np.random.default_rng(0)
    dist = dists.Normal(mu=0.0, sigma=1.0)
    declared = dist.evaluate_parents(_read_nothing)
    assert dist.sample(declared, (), rng).shape == ()
    assert dist.sample(declared, (4,), rng).shape == (4,)

    dirichlet = dists.Dirichlet(alpha=[1.0, 2.0, 3.0])
    draw = dirichlet.sample(dirichlet.evaluate_parents(_read_nothing), (3,), rng)
    assert draw.shape == (3,)
    assert draw.sum() == pytest.approx(1.0)


def test_dirichlet_off_simplex_is_negative_infinity() -> None:
    dirichlet = dists.Dirichlet(alpha=[1.0, 1.0])
    declared = dirichlet.evaluate_parents(_read_nothing)
    assert dirichlet.log_density(np.array([0.7, 0.7]), declared) == -np.inf


def test_operator_overloading_builds_expressions() -> None:
    a = mg.ref("a")
    expr = (a + 1) * 2 - a / 4
    assert isinstance(expr, transformed_parameters.SubtractParameter)
    assert str(expr) == "(((a + 1) * 2) - (a / 4))"

    values = {"a": np.float64(8.0)}
    assert expr.evaluate(lambda ref: values[ref.varname]) == pytest.approx(16.0)

    negated = -a
    assert negated.evaluate(lambda ref: values[ref.varname]) == pytest.approx(-8.0)
    reflected = 1 - a
    assert reflected.evaluate(lambda ref: values[ref.varname]) == pytest.approx(-7.0)


def test_get_references_is_unique_and_ordered() -> None:
    a = mg.ref("a")
    expr = a * a + mg.ref("x[2]")
    found = expr.get_references()
    assert [str(ref) for ref in found] == ["a", "x[2]"]
    assert all(isinstance(ref, NodeReference) for ref in found)


def test_operations_compute_immediately_on_numbers() -> None:
    assert ops.exp(0.0) == pytest.approx(1.0)
    assert ops.expit(0.0) == pytest.approx(0.5)
    assert ops.logit(0.5) == pytest.approx(0.0)
    assert ops.log1p_exp(0.0) == pytest.approx(np.log(2.0))
    np.testing.assert_allclose(ops.sum_(np.array([[1.0, 2.0], [3.0, 4.0]])), [3.0, 7.0])
    np.testing.assert_allclose(ops.normalize(np.array([1.0, 3.0])), [0.25, 0.75])
    assert ops.inprod(np.array([1.0, 2.0]), np.array([3.0, 4.0])) == pytest.approx(11.0)
    np.testing.assert_array_equal(ops.step(np.array([-1.0, 0.0, 2.0])), [0.0, 1.0, 1.0])


@pytest.mark.parametrize(
    "operation, formula",
    [
        (ops.inprod, r"\text{inprod}(x, y) = \sum_i x_i y_i"),
        (ops.logit, r"\log\frac{p}{1 - p}"),
        (ops.expit, r"\frac{1}{1 + e^{-x}}"),
    ],
)
def test_operation_docs_keep_their_formulas(operation, formula: str) -> None:
    assert formula in operation.__doc__
    assert formula in operation.__call__.__doc__


def test_operations_defer_on_components() -> None:
    expr = ops.exp(mg.ref("a"))
    assert isinstance(expr, transformed_parameters.ExpParameter)
    assert str(expr) == "exp(a)"


def test_model_code_declarations() -> None:
    code = mg.ModelCode()
    code["mu"] = dists.Normal(mu=0.0, sigma=1.0)
    code["x[1:3]"] = mg.ref("mu") * 2
    code["k"] = 4

    assert len(code) == 3
    assert code.varnames == ["mu", "x", "k"]
    assert "x[1:3]" in code
    assert isinstance(code["k"], Constant)
    assert [d.is_stochastic for d in code] == [True, False, False]
    assert str(list(code)[1]) == "x[1:3] <- (mu * 2)"


def test_model_code_rejects_duplicates_and_open_dimensions() -> None:
    code = mg.ModelCode()
    code["x[1]"] = 1.0
    with pytest.raises(ModelDefinitionError, match="more than once"):
        code["x[1]"] = 2.0
    with pytest.raises(ModelDefinitionError, match="open dimension"):
        code["m[, 1]"] = 2.0

"""Tests for model compilation and the graph store interface."""

import warnings

import numpy as np
import pytest

from scipy import stats

import modelgraph as mg
from modelgraph.exceptions import (
    CyclicGraphError,
    ModelDefinitionError,
    ModelGraphError,
    MultipleNodesNotSupported,
    ShapeMismatch,
    StaleDependencyWarning,
    UnknownNode,
    UnknownVariable,
)
from modelgraph.model.components import parameters as dists


def _vector_model() -> mg.Model:
    code = mg.ModelCode()
    for i in range(1, 6):
        code[f"x[{i}]"] = dists.Normal(mu=0.0, sigma=1.0)
    return mg.Model(code, inits={"x": np.arange(5.0)})


# Compilation
def test_variables_and_shapes(regression_model: mg.Model) -> None:
    assert regression_model.get_var_names() == ["mu", "sigma", "y", "ybar"]
    assert regression_model.get_variable("y").shape == (5,)
    assert regression_model.get_variable("ybar").shape == ()
    assert "mu" in regression_model
    assert "nope" not in regression_model


def test_shapes_from_largest_index_and_dimensions() -> None:
    code = mg.ModelCode()
    code["x[2]"] = 1.0
    code["x[4]"] = 2.0
    code["m[1:2, 3]"] = 0.0
    model = mg.Model(code)
    assert model.get_variable("x").shape == (4,)
    assert model.get_variable("m").shape == (2, 3)

    model = mg.Model(code, dimensions={"x": 6, "m": (3, 3)})
    assert model.get_variable("x").shape == (6,)
    assert model.get_variable("m").shape == (3, 3)


def test_shape_from_multivariate_parameters() -> None:
    code = mg.ModelCode()
    code["p"] = dists.Dirichlet(alpha=[1.0, 1.0, 1.0])
    model = mg.Model(code)
    assert model.get_variable("p").shape == (3,)
    assert model.expand_node_names("p") == ["p[1:3]"]


def test_discrete_variables_are_integer_typed() -> None:
    code = mg.ModelCode()
    code["k"] = dists.Poisson(lambda_=2.0)
    code["z"] = dists.Normal(mu=mg.ref("k"), sigma=1.0)
    model = mg.Model(code)
    assert model.get_variable("k").dtype == "int"
    assert model.get_variable("z").dtype == "real"


def test_undeclared_references_become_input_nodes(chain_model: mg.Model) -> None:
    assert chain_model.is_input("a")
    assert chain_model.get_node_names() == ["b", "c"]
    assert chain_model.get_node_names(include_inputs=True) == ["a", "b", "c"]
    assert len(chain_model) == 3


def test_partially_declared_variable_gets_input_elements() -> None:
    code = mg.ModelCode()
    code["x[2:3]"] = dists.Normal(mu=mg.ref("x[1]"), sigma=1.0)
    model = mg.Model(code)
    assert model.get_node_names(include_inputs=True) == ["x[1]", "x[2:3]"]
    assert model.get_parents("x[2:3]") == ["x[1]"]


def test_model_from_declaration_pairs() -> None:
    model = mg.Model(
        [
            ("b", mg.ref("a") + 1),
            ("c", dists.Normal(mu=mg.ref("b"), sigma=1.0)),
        ],
        inits={"a": 2.0, "c": 0.5},
    )
    assert isinstance(model.code, mg.ModelCode)
    assert model.get_node_names() == ["b", "c"]
    assert model.calculate() == pytest.approx(stats.norm.logpdf(0.5, 3.0, 1.0))
    assert model.get_value("b") == 3.0


def test_cycle_is_rejected_at_construction() -> None:
    code = mg.ModelCode()
    code["a"] = mg.ref("c") + 1
    code["b"] = mg.ref("a") * 2
    code["c"] = dists.Normal(mu=mg.ref("b"), sigma=1.0)
    with pytest.raises(CyclicGraphError) as excinfo:
        mg.Model(code)
    assert set(excinfo.value.cycle) == {"a", "b", "c"}


def test_self_reference_is_a_cycle() -> None:
    code = mg.ModelCode()
    code["a"] = mg.ref("a") + 1
    with pytest.raises(CyclicGraphError):
        mg.Model(code)


def test_overlapping_declarations_are_rejected() -> None:
    code = mg.ModelCode()
    code["x[1:3]"] = dists.Normal(mu=0.0, sigma=1.0)
    code["x[3]"] = 1.0
    with pytest.raises(ModelDefinitionError, match="overlaps"):
        mg.Model(code)


def test_declaring_a_constant_is_rejected() -> None:
    code = mg.ModelCode()
    code["n"] = 3.0
    with pytest.raises(ModelDefinitionError, match="constant"):
        mg.Model(code, constants={"n": 3.0})


def test_multivariate_node_must_be_a_vector() -> None:
    code = mg.ModelCode()
    code["p[1, 1:2]"] = dists.Dirichlet(alpha=[1.0, 1.0])
    code["p[2, 1:2]"] = dists.Dirichlet(alpha=[1.0, 1.0])
    assert mg.Model(code).get_variable("p").shape == (2, 2)

    code = mg.ModelCode()
    code["q[1:2]"] = dists.Dirichlet(alpha=[1.0, 1.0])
    code["q[3]"] = dists.Dirichlet(alpha=[1.0])
    with pytest.raises(ModelDefinitionError, match="vector"):
        mg.Model(code)


def test_reference_out_of_range_is_rejected() -> None:
    code = mg.ModelCode()
    code["b"] = mg.ref("a[7]") + 1
    with pytest.raises(UnknownNode):
        mg.Model(code, dimensions={"a": 3})


def test_data_shape_mismatch_is_rejected() -> None:
    code = mg.ModelCode()
    code["y[1:3]"] = dists.Normal(mu=0.0, sigma=1.0)
    with pytest.raises(ShapeMismatch):
        mg.Model(code, data={"y": np.zeros(3)}, dimensions={"y": 4})


def test_unused_data_is_ignored_with_a_warning(chain_code: mg.ModelCode) -> None:
    with pytest.warns(UserWarning, match="not used"):
        model = mg.Model(chain_code, data={"unused": 1.0})
    assert "unused" not in model


def test_constants_are_substituted() -> None:
    code = mg.ModelCode()
    code["b"] = mg.ref("n") * mg.ref("w[2]")
    model = mg.Model(code, constants={"n": 3.0, "w": [1.0, 2.0]})
    assert model.get_var_names() == ["b"]
    model.calculate()
    assert model.get_value("b") == pytest.approx(6.0)


def test_topological_order_breaks_ties_by_declaration() -> None:
    code = mg.ModelCode()
    code["z"] = dists.Normal(mu=mg.ref("m"), sigma=1.0)
    code["m"] = dists.Normal(mu=0.0, sigma=1.0)
    code["a"] = dists.Normal(mu=0.0, sigma=1.0)
    code["b"] = dists.Normal(mu=mg.ref("a"), sigma=1.0)
    model = mg.Model(code)
    assert model.get_node_names() == ["m", "z", "a", "b"]


def test_seeded_models_are_reproducible(chain_code: mg.ModelCode) -> None:
    first = mg.Model(chain_code, inits={"a": 0.0}, seed=3)
    second = mg.Model(chain_code, inits={"a": 0.0}, seed=3)
    for model in (first, second):
        model.calculate(["b"])
        model.simulate(["c"])
    assert first.get_value("c") == second.get_value("c")


# Name resolution
def test_expand_node_names_of_a_range() -> None:
    model = _vector_model()
    assert model.expand_node_names("x[1:3]") == ["x[1]", "x[2]", "x[3]"]


def test_expand_node_names_preserves_order_and_drops_exact_repeats() -> None:
    model = _vector_model()
    assert model.expand_node_names(["x[4]", "x[2]", "x[4]", "x[2:3]"]) == [
        "x[4]",
        "x[2]",
        "x[3]",
    ]
    assert model.expand_node_names("x") == [f"x[{i}]" for i in range(1, 6)]


def test_expand_node_names_of_a_block_and_its_elements() -> None:
    code = mg.ModelCode()
    code["x[1:3]"] = dists.Normal(mu=0.0, sigma=1.0)
    model = mg.Model(code)
    assert model.expand_node_names("x[2]") == ["x[1:3]"]
    assert model.expand_node_names("x[2:3]", return_scalar_components=True) == [
        "x[2]",
        "x[3]",
    ]


def test_expand_node_names_errors() -> None:
    model = _vector_model()
    with pytest.raises(UnknownVariable, match="'r' does not exist"):
        model.expand_node_names("r")
    with pytest.raises(UnknownNode):
        model.expand_node_names("x[6]")
    with pytest.raises(UnknownNode):
        model.expand_node_names("x[0]")
    with pytest.raises(ModelGraphError):
        model.expand_node_names(["x[1]", "r[1]"])


# Values
def test_get_and_set_values_are_confined_to_the_addressed_nodes() -> None:
    model = _vector_model()
    model.set_value("x[2]", 10.0)
    np.testing.assert_array_equal(model["x"], [0.0, 10.0, 2.0, 3.0, 4.0])

    model.set_value("x[4:5]", [7.0, 8.0])
    np.testing.assert_array_equal(model.get_value("x[3:5]"), [2.0, 7.0, 8.0])

    model["x"] = 1.0
    np.testing.assert_array_equal(model["x"], np.ones(5))


def test_get_value_returns_a_copy() -> None:
    model = _vector_model()
    value = model.get_value("x")
    value[:] = -1.0
    np.testing.assert_array_equal(model["x"], np.arange(5.0))


def test_set_value_shape_mismatch() -> None:
    model = _vector_model()
    with pytest.raises(ShapeMismatch):
        model.set_value("x[1:2]", [1.0, 2.0, 3.0])


def test_get_and_set_values_flat(regression_model: mg.Model) -> None:
    assert regression_model.get_values(["mu", "sigma"]) == pytest.approx([1.0, 1.5])
    regression_model.set_values(["sigma", "mu"], np.array([2.0, -1.0]))
    assert regression_model.get_value("mu") == -1.0
    assert regression_model.get_value("sigma") == 2.0
    with pytest.raises(ShapeMismatch):
        regression_model.set_values(["mu", "sigma"], [1.0])


def test_log_prob_access(chain_model: mg.Model) -> None:
    assert np.isnan(chain_model.get_log_prob_value("c"))
    assert chain_model.get_log_prob_value("b") == 0.0
    chain_model.set_log_prob("c", -1.5)
    assert chain_model.get_log_prob_value("c") == -1.5
    with pytest.raises(ModelGraphError, match="not stochastic"):
        chain_model.set_log_prob("b", -1.0)


def test_single_node_operations_reject_multiple_nodes() -> None:
    model = _vector_model()
    with pytest.raises(MultipleNodesNotSupported):
        model.get_log_prob_value("x[1:2]")
    with pytest.raises(MultipleNodesNotSupported):
        model.is_stochastic(["x[1]", "x[2]"])


# Introspection
def test_node_kinds(regression_model: mg.Model) -> None:
    assert regression_model.is_stochastic("mu")
    assert regression_model.is_deterministic("ybar")
    assert regression_model.is_data("y[3]")
    assert not regression_model.is_data("mu")
    assert regression_model.get_distribution("ybar") is None
    assert isinstance(regression_model.get_distribution("y[1]"), dists.Normal)


def test_get_node_names_filters(regression_model: mg.Model) -> None:
    ys = [f"y[{i}]" for i in range(1, 6)]
    assert regression_model.get_node_names() == ["mu", "sigma", *ys, "ybar"]
    assert regression_model.get_node_names(stochastic_only=True) == [
        "mu",
        "sigma",
        *ys,
    ]
    assert regression_model.get_node_names(determ_only=True) == ["ybar"]
    assert regression_model.get_node_names(data_only=True) == ys
    assert regression_model.get_node_names(include_data=False) == [
        "mu",
        "sigma",
        "ybar",
    ]
    assert regression_model.get_node_names(top_only=True) == ["mu", "sigma"]
    assert regression_model.get_node_names(end_only=True) == ["ybar"]
    with pytest.raises(ValueError):
        regression_model.get_node_names(stochastic_only=True, determ_only=True)


def test_parents_and_children(regression_model: mg.Model) -> None:
    assert regression_model.get_parents("y[2]") == ["mu", "sigma"]
    assert regression_model.get_children("mu") == [f"y[{i}]" for i in range(1, 6)]
    assert regression_model.get_children("ybar") == []


def test_set_data_marks_nodes_as_data() -> None:
    code = mg.ModelCode()
    code["y[1:2]"] = dists.Normal(mu=0.0, sigma=1.0)
    code["y[3]"] = dists.Normal(mu=0.0, sigma=1.0)
    model = mg.Model(code)
    assert model.get_node_names(data_only=True) == []

    model.set_data(y=[np.nan, 1.0, 2.0])
    assert model.get_node_names(data_only=True) == ["y[3]"]
    assert not model.is_data("y[1:2]")
    assert model.is_data("y[2]")
    assert model.get_value("y[3]") == 2.0

    with pytest.raises(ShapeMismatch):
        model.set_data(y=[1.0, 2.0])
    with pytest.raises(UnknownVariable):
        model.set_data(q=1.0)


def test_string_summary(chain_model: mg.Model) -> None:
    summary = str(chain_model)
    assert summary.startswith("Model 'model'")
    assert "Stochastic (1): c" in summary
    assert "Deterministic (1): b" in summary
    assert "Input (1): a" in summary


def test_graph_view_is_read_only(chain_model: mg.Model) -> None:
    graph = chain_model.graph
    assert graph.number_of_edges() == 2
    with pytest.raises(Exception):
        graph.add_edge("x", "y")


def test_writes_mark_dependents_stale(chain_model: mg.Model) -> None:
    chain_model.set_value("a", 2.0)
    assert chain_model.is_stale("b")
    assert chain_model.is_stale("c")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        chain_model.calculate(["b", "c"])
    assert not chain_model.is_stale("b")
    assert not chain_model.is_stale("c")

    with pytest.warns(StaleDependencyWarning):
        chain_model.set_value("a", 4.0)
        chain_model.get_value("b")


def test_stale_warnings_can_be_disabled(chain_code: mg.ModelCode) -> None:
    model = mg.Model(chain_code, inits={"a": 1.0, "c": 0.0}, warn_stale=False)
    model.calculate()
    model.set_value("a", 3.0)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        model.get_value("b")
        model.calculate(["c"])
        model.get_log_prob()

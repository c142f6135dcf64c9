"""Tests for setup/run specialization."""

import numpy as np
import pytest

from typeguard import TypeCheckError

import modelgraph as mg
from modelgraph.algorithms import GraphFunction, graph_function, run_method
from modelgraph.exceptions import SpecializationError


class ScaledCalc(GraphFunction):
    MUTABLE = ("n_calls",)

    def setup(self, model, target, scale=1.0):
        self.target = model.expand_node_names(target)
        self.calc_nodes = model.get_dependencies(self.target)
        self.scale = scale
        self.n_calls = 0

    def run(self, value: float) -> float:
        self.n_calls += 1
        self.model.set_values(self.target, [value * self.scale])
        return self.model.calculate(self.calc_nodes)

    @run_method
    def describe(self) -> str:
        return ", ".join(self.calc_nodes)

    def helper(self):
        return len(self.calc_nodes)


def test_setup_records_and_run_evaluates(chain_model: mg.Model) -> None:
    specialized = ScaledCalc(chain_model, "a", scale=2.0)
    assert specialized.phase == "run"
    assert specialized.calc_nodes == ("a", "b", "c")

    logp = specialized(1.0)
    assert chain_model.get_value("b") == pytest.approx(3.0)
    assert logp == pytest.approx(specialized.run(1.0))
    assert specialized.n_calls == 2


def test_entry_points(chain_model: mg.Model) -> None:
    specialized = ScaledCalc(chain_model, "a")
    assert set(specialized.entry_points) == {"run", "describe"}
    assert specialized.describe() == "a, b, c"
    assert specialized.helper() == 3
    assert "entry_points=['run', 'describe']" in str(specialized)


def test_setup_attributes_are_frozen(chain_model: mg.Model) -> None:
    specialized = ScaledCalc(chain_model, "a")
    with pytest.raises(SpecializationError, match="MUTABLE"):
        specialized.calc_nodes = ["c"]
    with pytest.raises(SpecializationError):
        specialized.model = None
    with pytest.raises(SpecializationError):
        specialized._phase = "setup"

    # Mutable attributes may be bound, new attributes may not
    specialized.n_calls = 10
    assert specialized.n_calls == 10
    with pytest.raises(SpecializationError, match="not created during setup"):
        specialized.scratch = 1


def test_run_cannot_create_attributes(chain_model: mg.Model) -> None:
    class Leaky(GraphFunction):
        def setup(self, model):
            self.total = 0.0

        def run(self) -> None:
            self.extra = 1

    with pytest.raises(SpecializationError, match="MUTABLE"):
        Leaky(chain_model)()


def test_lists_become_tuples(chain_model: mg.Model) -> None:
    specialized = ScaledCalc(chain_model, "a")
    assert isinstance(specialized.target, tuple)
    with pytest.raises(AttributeError):
        specialized.calc_nodes.append("x")


def test_run_arguments_are_type_checked(chain_model: mg.Model) -> None:
    specialized = ScaledCalc(chain_model, "a")
    with pytest.raises(TypeCheckError):
        specialized("1.0")
    # ints are acceptable floats
    specialized(1)


def test_run_return_value_is_type_checked(chain_model: mg.Model) -> None:
    class Wrong(GraphFunction):
        def run(self) -> int:
            return "not an int"

    with pytest.raises(TypeCheckError):
        Wrong(chain_model).run()


def test_entry_points_are_unavailable_during_setup(chain_model: mg.Model) -> None:
    class Eager(GraphFunction):
        def setup(self, model):
            self.value = self.run()

        def run(self) -> float:
            return 0.0

    with pytest.raises(SpecializationError, match="before setup completed"):
        Eager(chain_model)


def test_base_run_is_not_implemented(chain_model: mg.Model) -> None:
    with pytest.raises(NotImplementedError):
        GraphFunction(chain_model).run()


def test_subclasses_inherit_entry_points(chain_model: mg.Model) -> None:
    class Child(ScaledCalc):
        @run_method
        def total(self) -> float:
            return self.model.get_log_prob(self.calc_nodes)

    child = Child(chain_model, "a")
    assert set(child.entry_points) == {"run", "describe", "total"}
    child(0.0)
    assert child.total() == pytest.approx(
        float(chain_model.get_log_prob_value("c"))
    )


def test_graph_function_builds_a_generator(regression_model: mg.Model) -> None:
    def setup(self, model, target):
        self.target = model.expand_node_names(target)
        self.calc_nodes = model.get_dependencies(self.target)

    def run(self, values: np.ndarray) -> float:
        self.model.set_values(self.target, values)
        return self.model.calculate(self.calc_nodes)

    def current(self) -> np.ndarray:
        return self.model.get_values(self.target)

    objective = graph_function(
        setup=setup, run=run, methods={"current": current}, name="Objective"
    )
    assert issubclass(objective, GraphFunction)
    assert objective.__name__ == "Objective"

    specialized = objective(regression_model, ["mu", "sigma"])
    first = specialized(np.array([0.5, 2.0]))
    np.testing.assert_array_equal(specialized.current(), [0.5, 2.0])
    assert first == pytest.approx(regression_model.get_log_prob())

    with pytest.raises(TypeCheckError):
        specialized([0.5, 2.0])


def test_graph_function_mutable(chain_model: mg.Model) -> None:
    def setup(self, model):
        self.count = 0

    def run(self) -> int:
        self.count += 1
        return self.count

    counter = graph_function(setup=setup, run=run, mutable=("count",))(chain_model)
    assert counter() == 1
    assert counter() == 2

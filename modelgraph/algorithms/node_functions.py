# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Built-in specialized algorithms over sets of nodes.

Each class here is a :py:class:`~modelgraph.algorithms.specializer.GraphFunction`:
node lists are resolved once during setup and the run phase only evaluates.

.. list-table::
    :header-rows: 1

    * - Algorithm
      - Run phase
    * - :py:class:`SimNodes`
      - Simulate the nodes
    * - :py:class:`CalcNodes`
      - Calculate the nodes and everything that depends on them
    * - :py:class:`GetLogProbNodes`
      - Sum the stored log-probabilities of the nodes
    * - :py:class:`SetAndCalculate`
      - Write a flat vector into target nodes, then calculate their dependents
    * - :py:class:`SimNodesMany`
      - Simulate repeatedly, saving each draw as a row of a value store
    * - :py:class:`CalcNodesMany`
      - Calculate for every row of a value store
    * - :py:class:`GetLogProbNodesMany`
      - Sum stored log-probabilities for every row of a value store
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from modelgraph import utils
from modelgraph.algorithms.specializer import GraphFunction
from modelgraph.defaults import DEFAULT_SHOW_PROGRESS
from modelgraph.model.node_names import NodeName

if TYPE_CHECKING:
    from modelgraph import custom_types
    from modelgraph.model import model as model_module, model_values


class SimNodes(GraphFunction):
    """Simulate a fixed list of nodes.

    :param model: Model to simulate
    :type model: Model
    :param nodes: Nodes to simulate. Defaults to every node.
    :type nodes: custom_types.NodesLike
    :param include_data: Overwrite data nodes too. Defaults to False.
    :type include_data: bool
    """

    def setup(
        self,
        model: "model_module.Model",
        nodes: "custom_types.NodesLike" = None,
        include_data: bool = False,
    ) -> None:
        self.nodes = model.expand_node_names(nodes)
        self.include_data = include_data

    def run(self) -> None:
        self.model.simulate(self.nodes, include_data=self.include_data)


class CalcNodes(GraphFunction):
    """Calculate a set of nodes and all of their dependents.

    :param model: Model to calculate
    :type model: Model
    :param nodes: Nodes whose dependents are calculated. Defaults to every node.
    :type nodes: custom_types.NodesLike
    """

    def setup(
        self, model: "model_module.Model", nodes: "custom_types.NodesLike" = None
    ) -> None:
        self.nodes = (
            model.expand_node_names(None)
            if nodes is None
            else model.get_dependencies(nodes)
        )

    def run(self) -> float:
        return self.model.calculate(self.nodes)


class GetLogProbNodes(GraphFunction):
    """Sum the stored log-probabilities of a fixed list of nodes."""

    def setup(
        self, model: "model_module.Model", nodes: "custom_types.NodesLike" = None
    ) -> None:
        self.nodes = model.expand_node_names(nodes)

    def run(self) -> float:
        return self.model.get_log_prob(self.nodes)


class SetAndCalculate(GraphFunction):
    """Write values into target nodes and calculate everything that depends on
    them, returning the log-probability. The usual objective for optimizers.

    :param model: Model to evaluate
    :type model: Model
    :param target_nodes: Nodes that receive the values
    :type target_nodes: custom_types.NodesLike

    Example:
        >>> objective = SetAndCalculate(model, ["mu", "sigma"])
        >>> objective(np.array([0.5, 2.0]))
    """

    def setup(
        self, model: "model_module.Model", target_nodes: "custom_types.NodesLike"
    ) -> None:
        self.target_nodes = model.expand_node_names(target_nodes)
        self.calc_nodes = model.get_dependencies(self.target_nodes)
        self.n_values = sum(NodeName.parse(node).size for node in self.target_nodes)

    def run(self, values: np.ndarray) -> float:
        self.model.set_values(self.target_nodes, values)
        return self.model.calculate(self.calc_nodes)


class SimNodesMany(GraphFunction):
    """Simulate nodes repeatedly, saving every draw to a value store.

    :param model: Model to simulate
    :type model: Model
    :param nodes: Nodes to simulate and save. Their variables must be held by
        ``mv``.
    :type nodes: custom_types.NodesLike
    :param mv: Value store receiving one row per draw. Shared, not copied.
    :type mv: ModelValues
    :param include_data: Overwrite data nodes too. Defaults to False.
    :type include_data: bool
    :param show_progress: Show a progress bar. Defaults to
        :py:data:`~modelgraph.defaults.DEFAULT_SHOW_PROGRESS`.
    :type show_progress: bool
    """

    def setup(
        self,
        model: "model_module.Model",
        nodes: "custom_types.NodesLike",
        mv: "model_values.ModelValues",
        include_data: bool = False,
        show_progress: bool = DEFAULT_SHOW_PROGRESS,
    ) -> None:
        self.nodes = model.expand_node_names(nodes)
        self.mv = mv
        self.include_data = include_data
        self.show_progress = show_progress

    def run(self, m: int) -> None:
        """Draw ``m`` times, resizing the value store to ``m`` rows."""
        self.mv.resize(m)
        for row in utils.progress(
            range(m), show=self.show_progress, desc="Simulating"
        ):
            self.model.simulate(self.nodes, include_data=self.include_data)
            self.mv.copy_from_model(self.model, row, self.nodes)


class CalcNodesMany(GraphFunction):
    """Calculate nodes for every row of a value store.

    For each row, the store's values are copied into the model and the nodes
    and their dependents are calculated.

    :param model: Model to evaluate
    :type model: Model
    :param nodes: Nodes whose dependents are calculated
    :type nodes: custom_types.NodesLike
    :param mv: Value store whose rows are evaluated. Shared, not copied.
    :type mv: ModelValues
    :param show_progress: Show a progress bar. Defaults to
        :py:data:`~modelgraph.defaults.DEFAULT_SHOW_PROGRESS`.
    :type show_progress: bool
    """

    def setup(
        self,
        model: "model_module.Model",
        nodes: "custom_types.NodesLike",
        mv: "model_values.ModelValues",
        show_progress: bool = DEFAULT_SHOW_PROGRESS,
    ) -> None:
        self.calc_nodes = model.get_dependencies(nodes)
        self.mv = mv
        self.show_progress = show_progress

        # Nodes whose log-probabilities can be saved back to the store
        self.saved_nodes = [
            node
            for node in self.calc_nodes
            if model.is_stochastic(node)
            and NodeName.parse(node).varname in mv.log_prob_varnames
        ]

    def run(self, save_log_lik: bool = False) -> np.ndarray:
        """Evaluate every row.

        :param save_log_lik: Also save the new log-probabilities of the
            calculated nodes into the store. Defaults to False.
        :type save_log_lik: bool

        :returns: Summed log-probability per row
        :rtype: np.ndarray
        """
        totals = np.empty(self.mv.size)
        for row in utils.progress(
            range(self.mv.size), show=self.show_progress, desc="Calculating"
        ):
            self.mv.copy_to_model(self.model, row)
            totals[row] = self.model.calculate(self.calc_nodes)
            if save_log_lik and self.saved_nodes:
                self.mv.copy_from_model(
                    self.model, row, self.saved_nodes, include_log_prob=True
                )
        return totals


class GetLogProbNodesMany(GraphFunction):
    """Sum stored log-probabilities for every row of a value store.

    For each row, the store's values and log-probabilities are copied into the
    model and the log-probabilities of the nodes are summed without being
    recalculated. The store must hold log-probabilities for the nodes.

    :param model: Model to read
    :type model: Model
    :param nodes: Nodes to sum over
    :type nodes: custom_types.NodesLike
    :param mv: Value store whose rows are read. Shared, not copied.
    :type mv: ModelValues
    :param show_progress: Show a progress bar. Defaults to
        :py:data:`~modelgraph.defaults.DEFAULT_SHOW_PROGRESS`.
    :type show_progress: bool
    """

    def setup(
        self,
        model: "model_module.Model",
        nodes: "custom_types.NodesLike",
        mv: "model_values.ModelValues",
        show_progress: bool = DEFAULT_SHOW_PROGRESS,
    ) -> None:
        self.nodes = model.expand_node_names(nodes)
        self.mv = mv
        self.show_progress = show_progress

    def run(self) -> np.ndarray:
        totals = np.empty(self.mv.size)
        for row in utils.progress(
            range(self.mv.size), show=self.show_progress, desc="Reading"
        ):
            self.mv.copy_to_model(self.model, row, include_log_prob=True)
            totals[row] = self.model.get_log_prob(self.nodes)
        return totals
